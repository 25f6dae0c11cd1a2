"""Cleanup category definitions for declutter."""

from declutter.models import CategoryRule, RiskLevel, ScanMode

# Directory names never descended into by deep walks of the home directory
HOME_WALK_EXCLUDES = [
    "Library",
    "Applications",
    "Public",
    ".Trash",
    ".git",
    "node_modules",
    "go",
    "venv",
    ".venv",
    ".build",
    "Pods",
]

# Children of ~/Library/Caches that other categories own
CLAIMED_CACHE_NAMES = [
    "Google",
    "Firefox",
    "BraveSoftware",
    "com.apple.Safari",
    "com.microsoft.Edge",
    "company.thebrowser.Browser",
    "com.operasoftware.Opera",
    "com.vivaldi.Vivaldi",
    "com.tencent.xinWeChat",
    "ru.keepcoder.Telegram",
    "com.tinyspeck.slackmacgap",
    "com.hnc.Discord",
    "net.whatsapp.WhatsApp",
    "jp.naver.line.mac",
    "com.apple.helpd",
    "CloudKit",
    "GeoServices",
    "com.apple.dt.Xcode",
    "CocoaPods",
    "Yarn",
    "Homebrew",
    "pip",
]

# All cleanup categories with their scan rules
CATEGORIES: dict[str, CategoryRule] = {
    # =============================================================================
    # CACHES AND LOGS - one entry per child of each root
    # =============================================================================
    "user_cache": CategoryRule(
        id="user_cache",
        name="User Caches",
        paths=["~/Library/Caches"],
        min_size_bytes=100_000,
        owner_from_name=True,
        orphan_aware=True,
        exclude_names=CLAIMED_CACHE_NAMES,
        risk_level=RiskLevel.SAFE,
        description="Per-application cache folders",
        consequences="Apps may be slower on first launch while caches rebuild",
    ),
    "saved_state": CategoryRule(
        id="saved_state",
        name="Saved Application State",
        paths=["~/Library/Saved Application State", "~/Library/Cookies"],
        owner_from_name=True,
        risk_level=RiskLevel.SAFE,
        description="Window restore state and cookie stores",
        consequences="Apps reopen without their previous windows",
    ),
    "browser_cache": CategoryRule(
        id="browser_cache",
        name="Browser Caches",
        paths=[
            "~/Library/Caches/Google/Chrome",
            "~/Library/Application Support/Google/Chrome/Default/Cache",
            "~/Library/Application Support/Google/Chrome/Default/Code Cache",
            "~/Library/Application Support/Google/Chrome/Default/GPUCache",
            "~/Library/Caches/com.apple.Safari",
            "~/Library/Caches/Firefox",
            "~/Library/Caches/com.microsoft.Edge",
            "~/Library/Application Support/Microsoft Edge/Default/Cache",
            "~/Library/Caches/company.thebrowser.Browser",
            "~/Library/Caches/BraveSoftware",
            "~/Library/Caches/com.operasoftware.Opera",
            "~/Library/Caches/com.vivaldi.Vivaldi",
            "~/.cache/google-chrome",
            "~/.cache/mozilla/firefox",
        ],
        mode=ScanMode.ROOT,
        risk_level=RiskLevel.SAFE,
        description="Browser caches (not passwords, history or bookmarks)",
        consequences="Websites load slower on first visit",
    ),
    "chat_cache": CategoryRule(
        id="chat_cache",
        name="Chat Caches",
        paths=[
            "~/Library/Caches/com.tencent.xinWeChat",
            "~/Library/Caches/ru.keepcoder.Telegram",
            "~/Library/Caches/com.tinyspeck.slackmacgap",
            "~/Library/Application Support/Slack/Service Worker/CacheStorage",
            "~/Library/Caches/com.hnc.Discord",
            "~/Library/Application Support/discord/Cache",
            "~/Library/Application Support/discord/Code Cache",
            "~/Library/Caches/net.whatsapp.WhatsApp",
            "~/Library/Caches/jp.naver.line.mac",
        ],
        mode=ScanMode.ROOT,
        risk_level=RiskLevel.SAFE,
        description="Cached media of chat applications",
        consequences="Media re-downloads when a conversation is opened",
    ),
    "user_logs": CategoryRule(
        id="user_logs",
        name="User Logs",
        paths=["~/Library/Logs", "~/.cache/logs"],
        exclude_names=["DiagnosticReports"],
        owner_from_name=True,
        risk_level=RiskLevel.SAFE,
        description="Application log files",
        consequences="Historical logs are unavailable for debugging",
    ),
    "crash_reports": CategoryRule(
        id="crash_reports",
        name="Crash Reports",
        paths=["~/Library/Logs/DiagnosticReports", "~/Library/Application Support/CrashReporter"],
        risk_level=RiskLevel.SAFE,
        description="Diagnostic reports from crashed applications",
        consequences="Old crash reports can no longer be sent to developers",
    ),
    "temp_files": CategoryRule(
        id="temp_files",
        name="Temporary Files",
        paths=[
            "~/Library/Caches/com.apple.helpd",
            "~/Library/Caches/CloudKit",
            "~/Library/Caches/GeoServices",
            "~/Downloads/*.dmg",
            "~/Downloads/*.pkg",
            "~/Downloads/*.zip",
        ],
        risk_level=RiskLevel.REVIEW,
        description="Installer leftovers and transient system caches",
        consequences="Installers must be downloaded again if needed",
    ),
    "developer_cache": CategoryRule(
        id="developer_cache",
        name="Developer Caches",
        paths=[
            "~/Library/Developer/Xcode/DerivedData",
            "~/Library/Developer/CoreSimulator/Caches",
            "~/Library/Caches/com.apple.dt.Xcode",
            "~/Library/Caches/CocoaPods",
            "~/.npm/_cacache",
            "~/Library/Caches/Yarn",
            "~/.gradle/caches",
            "~/Library/Caches/Homebrew",
            "~/Library/Caches/pip",
            "~/.cache/pip",
            "~/go/pkg/mod/cache",
        ],
        mode=ScanMode.ROOT,
        risk_level=RiskLevel.SAFE,
        description="Build products and package manager caches",
        consequences="Next build or install is slower while caches refill",
    ),
    "mail_attachments": CategoryRule(
        id="mail_attachments",
        name="Mail Attachments",
        paths=[
            "~/Library/Containers/com.apple.mail/Data/Library/Mail Downloads",
            "~/Library/Mail Downloads",
        ],
        risk_level=RiskLevel.REVIEW,
        description="Attachments downloaded by Mail",
        consequences="Attachments re-download from the server when opened",
    ),
    "ios_backups": CategoryRule(
        id="ios_backups",
        name="iOS Backups",
        paths=["~/Library/Application Support/MobileSync/Backup"],
        risk_level=RiskLevel.REVIEW,
        description="iPhone and iPad backups",
        consequences="Devices cannot be restored from these backups",
    ),
    "trash": CategoryRule(
        id="trash",
        name="Trash",
        paths=["~/.Trash", "~/.local/share/Trash/files"],
        include_hidden=True,
        risk_level=RiskLevel.REVIEW,
        description="Files already in the Trash",
        consequences="Deleted files cannot be recovered",
    ),
    "downloads": CategoryRule(
        id="downloads",
        name="Downloads",
        paths=["~/Downloads"],
        risk_level=RiskLevel.REVIEW,
        description="Everything in the Downloads folder",
        consequences="Files are moved to the Trash",
    ),
    # =============================================================================
    # DEEP WALKS - one entry per matching file
    # =============================================================================
    "unused_disk_images": CategoryRule(
        id="unused_disk_images",
        name="Disk Images",
        paths=["~"],
        mode=ScanMode.DEEP,
        extensions=[".dmg", ".iso", ".pkg"],
        exclude_names=HOME_WALK_EXCLUDES,
        risk_level=RiskLevel.REVIEW,
        description="Downloaded DMG/ISO/PKG images",
        consequences="Images must be downloaded again to reinstall",
    ),
    "large_files": CategoryRule(
        id="large_files",
        name="Large Files",
        paths=["~"],
        mode=ScanMode.DEEP,
        min_size_bytes=50 * 1024 * 1024,
        exclude_names=HOME_WALK_EXCLUDES,
        risk_level=RiskLevel.REVIEW,
        description="Files of 50 MB or more in the home directory",
        consequences="Files are moved to the Trash",
    ),
    # =============================================================================
    # ORPHAN-AWARE - residue of uninstalled applications
    # =============================================================================
    "app_residue": CategoryRule(
        id="app_residue",
        name="Application Residue",
        paths=["~/Library/Application Support", "~/Library/Containers"],
        min_size_bytes=100_000,
        orphan_aware=True,
        orphans_only=True,
        owner_from_name=True,
        exclude_names=["CrashReporter", "MobileSync", "Google", "Microsoft Edge", "Slack", "discord"],
        risk_level=RiskLevel.REVIEW,
        description="Support data and containers of uninstalled applications",
        consequences="Settings and data of the owning application are lost",
    ),
    # =============================================================================
    # SPECIAL ROUTINES
    # =============================================================================
    "broken_login_items": CategoryRule(
        id="broken_login_items",
        name="Broken Login Items",
        paths=["~/Library/LaunchAgents"],
        special="broken_login_items",
        risk_level=RiskLevel.SAFE,
        description="Launch agents pointing at programs that no longer exist",
        consequences="None - the program they start is already gone",
    ),
    "duplicates": CategoryRule(
        id="duplicates",
        name="Duplicate Files",
        special="duplicates",
        risk_level=RiskLevel.REVIEW,
        description="Files with identical content (content hash match)",
        consequences="Only the extra copies are removed; one copy is kept",
    ),
    # =============================================================================
    # POLICY-GATED - declared, never scanned
    # =============================================================================
    "universal_binaries": CategoryRule(
        id="universal_binaries",
        name="Universal Binaries",
        paths=["/Applications", "~/Applications"],
        enabled=False,
        risk_level=RiskLevel.RISKY,
        description="Unused CPU architectures inside application executables",
        consequences="Rewriting another application's executable breaks its signature",
    ),
    "language_files": CategoryRule(
        id="language_files",
        name="Language Files",
        paths=["/Applications"],
        enabled=False,
        risk_level=RiskLevel.RISKY,
        description="Unused .lproj localizations inside application bundles",
        consequences="Removing bundle resources invalidates code signatures",
    ),
    "deleted_users": CategoryRule(
        id="deleted_users",
        name="Deleted Users",
        paths=["/Users/Deleted Users"],
        enabled=False,
        risk_level=RiskLevel.RISKY,
        description="Archived home folders of removed accounts",
        consequences="The archived account data is lost",
    ),
    "old_updates": CategoryRule(
        id="old_updates",
        name="Old Updates",
        paths=["/Library/Updates"],
        enabled=False,
        risk_level=RiskLevel.RISKY,
        description="Installed system update packages",
        consequences="Lives under a protected system root",
    ),
    "document_versions": CategoryRule(
        id="document_versions",
        name="Document Versions",
        paths=["/.DocumentRevisions-V100"],
        enabled=False,
        risk_level=RiskLevel.RISKY,
        description="Version history of documents",
        consequences="Lives under a protected system root",
    ),
}


def get_category(category_id: str) -> CategoryRule | None:
    """Get a category by ID."""
    return CATEGORIES.get(category_id)


def get_all_categories() -> list[CategoryRule]:
    """Get all categories."""
    return list(CATEGORIES.values())


def get_enabled_categories() -> list[CategoryRule]:
    """Get categories that are not policy-gated."""
    return [c for c in CATEGORIES.values() if c.enabled]


def get_categories_by_risk(risk_level: RiskLevel) -> list[CategoryRule]:
    """Get all categories with the given risk level."""
    return [c for c in CATEGORIES.values() if c.risk_level == risk_level]


# Slow walks of the whole home directory, only run on request
DEEP_CATEGORY_IDS = ["unused_disk_images", "large_files", "duplicates"]


def get_default_categories(include_deep: bool = False) -> list[CategoryRule]:
    """Enabled categories for a full scan; deep walks only when asked for."""
    return [c for c in get_enabled_categories() if include_deep or c.id not in DEEP_CATEGORY_IDS]
