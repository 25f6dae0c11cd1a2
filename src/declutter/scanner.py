"""Directory sizing and per-category scanning for declutter."""

import glob
import os
import plistlib
import shutil
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable

from loguru import logger

from declutter.models import AppIdentity, CategoryRule, DiskUsage, Entry, ScanMode

# Files per chunk when summing large directory trees concurrently
SIZE_CHUNK_FILES = 500
SIZE_WORKERS = 4

GLOB_CHARS = ("*", "?", "[")

PathCallback = Callable[[str], None]


def expand_path(path: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def resolve_candidate_paths(pattern: str) -> list[Path]:
    """Expand a candidate root, resolving a trailing wildcard if present."""
    expanded = expand_path(pattern)
    if not any(ch in expanded.name for ch in GLOB_CHARS):
        return [expanded]
    return [Path(p) for p in sorted(glob.glob(str(expanded)))]


def _is_cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def walk_files(
    root: Path,
    include_hidden: bool = True,
    exclude_names: Iterable[str] = (),
    cancel: threading.Event | None = None,
):
    """
    Yield every regular file under root without following symlinks.

    Unreadable directories are skipped, never raised.
    """
    excluded = frozenset(exclude_names)
    stack = [root]
    while stack:
        if _is_cancelled(cancel):
            return
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    name = entry.name
                    if not include_hidden and name.startswith("."):
                        continue
                    if name in excluded:
                        continue
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            stack.append(Path(entry.path))
                        elif entry.is_file(follow_symlinks=False):
                            yield Path(entry.path)
                    except OSError:
                        continue
        except (PermissionError, OSError) as e:
            logger.debug("Skipping unreadable directory {}: {}", current, e)
            continue


def collect_files(root: Path, cancel: threading.Event | None = None) -> list[Path]:
    """List every regular file reachable from root."""
    return list(walk_files(root, cancel=cancel))


def _sum_sizes(paths: list[Path]) -> int:
    total = 0
    for path in paths:
        try:
            total += path.lstat().st_size
        except OSError:
            continue
    return total


def get_path_size(
    path: Path,
    chunk_files: int = SIZE_CHUNK_FILES,
    max_workers: int = SIZE_WORKERS,
    cancel: threading.Event | None = None,
) -> int:
    """
    Total bytes of all regular files reachable from path.

    Large trees are split into fixed-size chunks summed by a worker pool;
    each worker returns its partial sum and the caller adds them up.
    Files whose metadata cannot be read count as zero.

    Args:
        path: File or directory to measure
        chunk_files: Number of files handled by one worker task
        max_workers: Size of the worker pool for large trees
        cancel: Optional event that stops the walk early

    Returns:
        Total size in bytes
    """
    try:
        st = path.lstat()
    except OSError:
        return 0

    if not path.is_dir() or path.is_symlink():
        return st.st_size

    files = collect_files(path, cancel=cancel)
    if len(files) <= chunk_files:
        return _sum_sizes(files)

    chunks = [files[i : i + chunk_files] for i in range(0, len(files), chunk_files)]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return sum(executor.map(_sum_sizes, chunks))


def _orphan_candidate(path: Path, is_directory: bool) -> str:
    """Identifier tested against installed applications."""
    if is_directory:
        return path.name
    # com.vendor.app.plist -> com.vendor.app
    return path.stem if path.suffix else path.name


def make_entry(
    path: Path,
    size: int,
    rule: CategoryRule,
    is_directory: bool,
    identity: AppIdentity | None = None,
) -> Entry | None:
    """Build an entry for path, applying the rule's orphan and owner policy."""
    from declutter.apps import is_orphaned

    orphaned = False
    if rule.orphan_aware and identity is not None:
        orphaned = is_orphaned(_orphan_candidate(path, is_directory), identity)
        if rule.orphans_only and not orphaned:
            return None

    display_name = path.name
    if orphaned:
        display_name = f"{path.name} (not installed)"

    return Entry(
        path=str(path),
        display_name=display_name,
        size_bytes=size,
        category=rule.id,
        is_directory=is_directory,
        is_orphaned=orphaned,
        owner=path.name.lower() if rule.owner_from_name else None,
    )


class CategoryScanner:
    """Generic scan routine driven by a CategoryRule.

    Args:
        identity: Installed-application identity for orphan-aware rules
        is_protected: Predicate for paths that must never be reported
        chunk_files: Files per worker when sizing large directories
        cancel: Shared cancellation flag, checked between units of work
        on_path: Called with each path as it is examined
    """

    def __init__(
        self,
        identity: AppIdentity | None = None,
        is_protected: Callable[[Path], bool] | None = None,
        chunk_files: int = SIZE_CHUNK_FILES,
        cancel: threading.Event | None = None,
        on_path: PathCallback | None = None,
    ):
        self.identity = identity
        self.is_protected = is_protected or (lambda p: False)
        self.chunk_files = chunk_files
        self.cancel = cancel
        self.on_path = on_path
        self.special_routines: dict[str, Callable[[CategoryRule], list[Entry]]] = {
            "broken_login_items": self.scan_broken_login_items,
        }

    def _report(self, path: Path) -> None:
        if self.on_path:
            self.on_path(str(path))

    def scan(self, rule: CategoryRule) -> list[Entry]:
        """Scan one category and return its classified entries."""
        if not rule.enabled:
            logger.debug("Category {} is policy-gated; not scanning", rule.id)
            return []

        if rule.special:
            routine = self.special_routines.get(rule.special)
            if routine is None:
                logger.warning("No scan routine registered for {}", rule.special)
                return []
            return routine(rule)

        entries: list[Entry] = []
        for pattern in rule.paths:
            for root in resolve_candidate_paths(pattern):
                if _is_cancelled(self.cancel):
                    return entries
                if not root.exists() or self.is_protected(root):
                    continue
                self._report(root)

                if rule.mode == ScanMode.ROOT or root.is_file():
                    entry = self._measure(root, rule)
                    if entry:
                        entries.append(entry)
                elif rule.mode == ScanMode.CHILDREN:
                    entries.extend(self._scan_children(root, rule))
                else:
                    entries.extend(self._scan_deep(root, rule))

        entries.sort(key=lambda e: e.size_bytes, reverse=True)
        return entries

    def _measure(self, path: Path, rule: CategoryRule) -> Entry | None:
        is_directory = path.is_dir() and not path.is_symlink()
        size = get_path_size(path, chunk_files=self.chunk_files, cancel=self.cancel)
        if size < rule.min_size_bytes:
            return None
        return make_entry(path, size, rule, is_directory, self.identity)

    def _scan_children(self, root: Path, rule: CategoryRule) -> list[Entry]:
        entries: list[Entry] = []
        excluded = set(rule.exclude_names)
        try:
            children = sorted(root.iterdir())
        except (PermissionError, OSError) as e:
            logger.debug("Cannot list {}: {}", root, e)
            return entries

        for child in children:
            if _is_cancelled(self.cancel):
                break
            if child.name in excluded:
                continue
            if not rule.include_hidden and child.name.startswith("."):
                continue
            if self.is_protected(child):
                continue
            self._report(child)
            entry = self._measure(child, rule)
            if entry:
                entries.append(entry)
        return entries

    def _scan_deep(self, root: Path, rule: CategoryRule) -> list[Entry]:
        entries: list[Entry] = []
        extensions = tuple(ext.lower() for ext in rule.extensions)
        for path in walk_files(root, rule.include_hidden, rule.exclude_names, self.cancel):
            if extensions and not path.name.lower().endswith(extensions):
                continue
            try:
                size = path.lstat().st_size
            except OSError:
                continue
            if size < rule.min_size_bytes or self.is_protected(path):
                continue
            self._report(path)
            entry = make_entry(path, size, rule, False, self.identity)
            if entry:
                entries.append(entry)
        return entries

    def scan_broken_login_items(self, rule: CategoryRule) -> list[Entry]:
        """Launch agents whose program no longer exists on disk."""
        entries: list[Entry] = []
        for pattern in rule.paths:
            for root in resolve_candidate_paths(pattern):
                try:
                    plists = sorted(root.glob("*.plist"))
                except OSError:
                    continue
                for plist_path in plists:
                    if _is_cancelled(self.cancel):
                        return entries
                    self._report(plist_path)
                    program = _launch_agent_program(plist_path)
                    if program is None or os.path.exists(program):
                        continue
                    try:
                        size = plist_path.lstat().st_size
                    except OSError:
                        continue
                    entries.append(
                        Entry(
                            path=str(plist_path),
                            display_name=f"{plist_path.stem} -> {program}",
                            size_bytes=size,
                            category=rule.id,
                        )
                    )
        return entries


def _launch_agent_program(plist_path: Path) -> str | None:
    try:
        with open(plist_path, "rb") as f:
            data = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    program = data.get("Program")
    if isinstance(program, str) and program:
        return program
    arguments = data.get("ProgramArguments")
    if isinstance(arguments, list) and arguments and isinstance(arguments[0], str):
        return arguments[0]
    return None


def scan_category(rule: CategoryRule, identity: AppIdentity | None = None) -> list[Entry]:
    """Scan a single category with default settings."""
    return CategoryScanner(identity=identity).scan(rule)


def get_disk_usage(mount_point: str = "/") -> DiskUsage:
    """
    Get overall disk usage for a mount point.

    Uses APFS container size to match macOS System Settings.

    Args:
        mount_point: Mount point to check (default: /)

    Returns:
        DiskUsage with total, used, and free bytes
    """
    # Try to get APFS container size (matches macOS System Settings)
    if shutil.which("diskutil"):
        try:
            result = subprocess.run(
                ["diskutil", "info", mount_point],
                capture_output=True,
                text=True,
                timeout=10,
            )
            total_bytes = None
            free_bytes = None
            for line in result.stdout.split("\n"):
                # "Container Total Space:     245.1 GB (245107195904 Bytes)"
                if "Container Total Space:" in line and "(" in line:
                    total_bytes = int(line.split("(")[1].split()[0])
                elif "Container Free Space:" in line and "(" in line:
                    free_bytes = int(line.split("(")[1].split()[0])

            if total_bytes and free_bytes:
                return DiskUsage(
                    total_bytes=total_bytes,
                    used_bytes=total_bytes - free_bytes,
                    free_bytes=free_bytes,
                    mount_point=mount_point,
                )
        except (subprocess.SubprocessError, OSError, ValueError, IndexError) as e:
            logger.debug("diskutil unavailable for {}: {}", mount_point, e)

    # Fallback to shutil (works on non-APFS systems)
    usage = shutil.disk_usage(mount_point)
    return DiskUsage(
        total_bytes=usage.total,
        used_bytes=usage.used,
        free_bytes=usage.free,
        mount_point=mount_point,
    )
