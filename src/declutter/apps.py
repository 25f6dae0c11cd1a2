"""Installed-application identity set and orphan detection.

The orphan check is deliberately conservative: any ambiguity resolves to
"not orphaned" so live application data is never offered as residue.
"""

import os
import plistlib
from pathlib import Path
from typing import Callable, Iterable

import psutil
from loguru import logger

from declutter.models import AppIdentity, InstalledApp
from declutter.scanner import expand_path

APPLICATION_DIRS = [
    "/Applications",
    "/System/Applications",
    "/System/Applications/Utilities",
    "~/Applications",
]

DESKTOP_ENTRY_DIRS = [
    "/usr/share/applications",
    "~/.local/share/applications",
    "/var/lib/flatpak/exports/share/applications",
]

CASKROOM_DIRS = ["/opt/homebrew/Caskroom", "/usr/local/Caskroom"]

SYSTEM_PREFIXES = ("com.apple.", "apple")

# Apple services and system daemons that never count as residue
SYSTEM_NAMES = frozenset(
    {
        "cloudkit", "geoservices", "familycircle", "familycircled", "knowledge",
        "metadata", "tmp", "t", "caches", "cache", "logs", "preferences", "temp",
        "cookies", "webkit", "httpstorages", "containers", "group containers",
        "databases", "keychains", "accounts", "accountsd", "mail", "calendars",
        "contacts", "safari", "finder", "dock", "spotlight", "siri", "passkit",
        "wallet", "passd", "appstore", "facetime", "messages", "photos", "music",
        "tv", "icloud", "cloudd", "cloudphotosd", "cloudpaird", "appleaccount",
        "identityservicesd", "itunesstored", "commerce", "storekit",
        "softwareupdate", "diagnostics", "loginwindow", "systemuiserver",
        "controlcenter", "notificationcenter", "launchservicesd", "cfprefsd",
        "sharedfilelistd", "mediaremoted", "coremedia", "securityd", "trustd",
    }
)

# Vendors and tools whose data is always kept
SAFE_LIST = [
    "com.apple", "cloudkit", "safari", "mail", "messages", "photos", "finder",
    "xcode", "instruments", "icloud", "findmy", "google", "chrome", "microsoft",
    "firefox", "mozilla", "adobe", "dropbox", "slack", "discord", "zoom",
    "telegram", "wechat", "tencent", "jetbrains", "vscode", "homebrew", "npm",
    "python", "ruby", "java", "teamviewer", "anydesk",
]

INFRA_PATTERNS = ("framework", "plugin", "extension", "helper", "service", "daemon", "agent")

MIN_COMPONENT_LENGTH = 4
MIN_CONTAINED_ALIAS_LENGTH = 3


def identifier_aliases(identifier: str) -> set[str]:
    """Lower-cased identifier plus its dot-separated components of 4+ characters."""
    lowered = identifier.strip().lower()
    if not lowered:
        return set()
    aliases = {lowered}
    for component in lowered.split("."):
        if len(component) >= MIN_COMPONENT_LENGTH:
            aliases.add(component)
    return aliases


def _read_bundle_info(app_path: Path) -> dict:
    plist_path = app_path / "Contents" / "Info.plist"
    try:
        with open(plist_path, "rb") as f:
            info = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError):
        return {}
    return info if isinstance(info, dict) else {}


def enumerate_installed_apps(
    app_dirs: Iterable[str] = APPLICATION_DIRS,
    desktop_dirs: Iterable[str] = DESKTOP_ENTRY_DIRS,
    cask_dirs: Iterable[str] = CASKROOM_DIRS,
) -> list[InstalledApp]:
    """List application bundles, desktop entries and Homebrew casks."""
    apps: list[InstalledApp] = []

    for app_dir in app_dirs:
        root = expand_path(app_dir)
        try:
            children = sorted(os.listdir(root))
        except OSError:
            continue
        for child in children:
            if not child.endswith(".app"):
                continue
            info = _read_bundle_info(root / child)
            bundle_id = info.get("CFBundleIdentifier")
            apps.append(
                InstalledApp(
                    name=info.get("CFBundleName") or child[: -len(".app")],
                    bundle_id=bundle_id if isinstance(bundle_id, str) else None,
                )
            )
            # Bundle file names and display names often differ
            if info.get("CFBundleName") and info["CFBundleName"] != child[: -len(".app")]:
                apps.append(InstalledApp(name=child[: -len(".app")]))

    for desktop_dir in desktop_dirs:
        root = expand_path(desktop_dir)
        try:
            children = sorted(os.listdir(root))
        except OSError:
            continue
        for child in children:
            if child.endswith(".desktop"):
                stem = child[: -len(".desktop")]
                apps.append(InstalledApp(name=stem.split(".")[-1], bundle_id=stem, source="desktop"))

    for cask_dir in cask_dirs:
        try:
            casks = sorted(os.listdir(expand_path(cask_dir)))
        except OSError:
            continue
        apps.extend(InstalledApp(name=cask, source="homebrew") for cask in casks)

    return apps


def enumerate_running_processes() -> list[InstalledApp]:
    """List names of running processes, plus bundle names from their executables."""
    running: list[InstalledApp] = []
    for proc in psutil.process_iter(["name", "exe"]):
        try:
            name = proc.info.get("name")
            exe = proc.info.get("exe") or ""
        except (psutil.Error, AttributeError):
            continue
        if name:
            running.append(InstalledApp(name=name, source="process"))
        if ".app/" in exe:
            bundle = exe.split(".app/")[0].rsplit("/", 1)[-1]
            running.append(InstalledApp(name=bundle, source="process"))
    return running


class InstalledEntitySet:
    """Builds the identity set used to decide whether data is orphaned.

    Rebuild it for every classification pass; the process table changes.
    """

    def __init__(
        self,
        app_enumerator: Callable[[], list[InstalledApp]] = enumerate_installed_apps,
        process_enumerator: Callable[[], list[InstalledApp]] = enumerate_running_processes,
        safe_list: Iterable[str] = SAFE_LIST,
    ):
        self.app_enumerator = app_enumerator
        self.process_enumerator = process_enumerator
        self.safe_list = list(safe_list)
        self.identity: AppIdentity | None = None

    def build(self) -> AppIdentity:
        identity = AppIdentity()

        sources = []
        for enumerator in (self.app_enumerator, self.process_enumerator):
            try:
                sources.extend(enumerator())
            except (OSError, psutil.Error) as e:
                logger.warning("Application enumerator {} failed: {}", enumerator, e)
                identity.complete = False

        for app in sources:
            if app.bundle_id:
                identity.bundle_identifier_aliases |= identifier_aliases(app.bundle_id)
            identity.display_name_aliases |= identifier_aliases(app.name)

        for safe in self.safe_list:
            identity.bundle_identifier_aliases |= identifier_aliases(safe)

        logger.debug(
            "Identity set: {} bundle aliases, {} name aliases",
            len(identity.bundle_identifier_aliases),
            len(identity.display_name_aliases),
        )
        self.identity = identity
        return identity

    def is_orphaned(self, candidate: str) -> bool:
        if self.identity is None:
            self.build()
        return is_orphaned(candidate, self.identity)


def is_system_identifier(candidate: str) -> bool:
    lowered = candidate.lower()
    return lowered.startswith(SYSTEM_PREFIXES) or lowered in SYSTEM_NAMES


def is_orphaned(candidate: str, identity: AppIdentity) -> bool:
    """Return True only when nothing installed, running or safe-listed claims ``candidate``."""
    lowered = candidate.strip().lower()
    if not lowered or lowered.startswith("."):
        return False

    # An incomplete picture of what is installed never proves anything orphaned
    if not identity.complete:
        return False

    if is_system_identifier(lowered):
        return False

    aliases = identity.aliases
    if lowered in aliases:
        return False

    components = [c for c in lowered.split(".") if len(c) >= MIN_COMPONENT_LENGTH]
    if any(c in aliases for c in components):
        return False

    for alias in aliases:
        if lowered in alias:
            return False
        if len(alias) >= MIN_CONTAINED_ALIAS_LENGTH and alias in lowered:
            return False
        if any(c in alias for c in components):
            return False

    if any(pattern in lowered for pattern in INFRA_PATTERNS):
        return False

    return True
