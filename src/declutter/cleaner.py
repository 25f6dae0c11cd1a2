"""Deletion pipeline with safety checks for declutter.

Each selected entry is moved to the trash, removed in place if that fails,
and otherwise left for a single privileged batch retry.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable

from loguru import logger

from declutter.config import Settings
from declutter.errors import DirectRemoveFailure, PrivilegeError, SoftDeleteFailure
from declutter.models import DeletionOutcome, DuplicateGroup, Entry, FailedEntry, ScanSession
from declutter.privileges import ElevatedExecutor, move_to_trash, remove_path, removal_commands
from declutter.scanner import expand_path

# Paths that should NEVER be deleted
BLOCKED_PATHS = [
    "~/Documents",
    "~/Desktop",
    "~/Pictures",
    "~/Music",
    "~/Movies",
    "~/Library",
    "~/Library/Caches",
    "~/Library/Application Support",
    "~/Downloads",
    "/System",
    "/Library",
    "/Applications",
    "/usr",
    "/bin",
    "/sbin",
    "/var",
    "/private",
    "/Users",
    "/etc",
    "/opt",
    "/",
    "~",
]

BLOCKED_REASON = "Blocked path"
PROTECTED_REASON = "Protected path"
LAST_COPY_REASON = "Last remaining copy of duplicate content"
STILL_PRESENT_REASON = "Still present after privileged removal"


class RemovalStatus(str, Enum):
    DELETED = "deleted"
    ABSENT = "absent"
    FAILED = "failed"


def is_path_safe(path: Path | str) -> bool:
    """
    Check if a path is safe to delete.

    Blocked paths themselves are refused; their contents are not.

    Args:
        path: Path to check

    Returns:
        True if safe to delete, False otherwise
    """
    path_str = str(path).rstrip("/") or "/"
    if not os.path.isabs(path_str):
        return False

    for blocked in BLOCKED_PATHS:
        blocked_expanded = str(expand_path(blocked)).rstrip("/") or "/"
        if path_str == blocked_expanded:
            return False

    # Don't allow deleting home directory itself
    if path_str == str(Path.home()):
        return False

    return True


class DeletionPipeline:
    """Remove selected entries from disk and from the session they belong to.

    Args:
        session: Session whose entries are deleted; successes are removed from it
        settings: Supplies user-protected paths
        trash: Soft-delete primitive
        remove: In-place removal primitive
        executor: Elevated batch executor for the privileged retry
        max_workers: Concurrent removals per batch
    """

    def __init__(
        self,
        session: ScanSession,
        settings: Settings | None = None,
        trash: Callable[[str], None] = move_to_trash,
        remove: Callable[[str], None] = remove_path,
        executor: ElevatedExecutor | None = None,
        max_workers: int = 4,
    ):
        self.session = session
        self.settings = settings or Settings()
        self.trash = trash
        self.remove = remove
        self.executor = executor or ElevatedExecutor()
        self.max_workers = max_workers

    def _refusal(self, path: str) -> str | None:
        if not is_path_safe(path):
            return BLOCKED_REASON
        if self.settings.is_protected(path):
            return PROTECTED_REASON
        return None

    def plan(self, entries: list[Entry]) -> tuple[list[Entry], list[FailedEntry]]:
        """Split entries into those that may be deleted and those that are skipped."""
        allowed: list[Entry] = []
        skipped: list[FailedEntry] = []
        seen: set[str] = set()

        for entry in entries:
            if entry.path in seen:
                continue
            seen.add(entry.path)
            reason = self._refusal(entry.path)
            if not reason and entry.path in self.session.retained_paths:
                reason = LAST_COPY_REASON
            if reason:
                skipped.append(FailedEntry(path=entry.path, reason=reason, size_bytes=entry.size_bytes))
            else:
                allowed.append(entry)

        # Keep one copy of every duplicate group
        doomed = {e.path for e in allowed}
        for group in self.session.duplicate_groups:
            if all(m.path in doomed for m in group.members):
                keep = group.retained
                doomed.discard(keep.path)
                skipped.append(FailedEntry(path=keep.path, reason=LAST_COPY_REASON, size_bytes=keep.size_bytes))
        allowed = [e for e in allowed if e.path in doomed]

        return allowed, skipped

    def delete_entry(self, entry: Entry) -> tuple[RemovalStatus, str | None]:
        """Soft delete, then direct removal. Runs on a worker thread."""
        path = entry.path
        if not os.path.lexists(path):
            return RemovalStatus.ABSENT, None

        try:
            self.trash(path)
            return RemovalStatus.DELETED, None
        except SoftDeleteFailure as e:
            logger.debug("Trash failed for {}: {}", path, e)

        try:
            self.remove(path)
            return RemovalStatus.DELETED, None
        except DirectRemoveFailure as e:
            logger.warning("Could not delete {}: {}", path, e)
            return RemovalStatus.FAILED, str(e)

    def delete_entries(self, entries: list[Entry], dry_run: bool = False) -> DeletionOutcome:
        """
        Delete entries and fold the results into the session.

        Args:
            entries: Entries to delete
            dry_run: If True, report what would be deleted without touching anything

        Returns:
            DeletionOutcome with successes, failures and skipped entries
        """
        allowed, skipped = self.plan(entries)
        outcome = DeletionOutcome(skipped=skipped, dry_run=dry_run)

        if dry_run:
            outcome.succeeded_count = len(allowed)
            outcome.succeeded_bytes = sum(e.size_bytes for e in allowed)
            return outcome

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = list(pool.map(self.delete_entry, allowed))

        for entry, (status, reason) in zip(allowed, results):
            if status == RemovalStatus.FAILED:
                outcome.failed.append(
                    FailedEntry(path=entry.path, reason=reason or "Unknown error", size_bytes=entry.size_bytes)
                )
                continue
            freed = status == RemovalStatus.DELETED
            self.session.remove_entry(entry, freed=freed)
            outcome.succeeded_count += 1
            if freed:
                outcome.succeeded_bytes += entry.size_bytes

        outcome.needs_privilege_escalation = bool(outcome.failed)
        logger.info(
            "Deleted {} items ({} bytes), {} failed, {} skipped",
            outcome.succeeded_count,
            outcome.succeeded_bytes,
            len(outcome.failed),
            len(outcome.skipped),
        )
        return outcome

    def delete_selected(
        self,
        target: str | DuplicateGroup | Entry | None = None,
        dry_run: bool = False,
    ) -> DeletionOutcome:
        """Delete the selected entries of a category, a duplicate group, one entry, or everything."""
        if isinstance(target, Entry):
            entries = [target]
        elif isinstance(target, DuplicateGroup):
            entries = [m for m in target.members if m.is_selected]
        else:
            entries = self.session.selected_entries(target)
        return self.delete_entries(entries, dry_run=dry_run)

    def retry_with_privilege_escalation(self, failed: list[FailedEntry]) -> DeletionOutcome:
        """
        Retry failed entries as one elevated batch, then verify each path.

        A declined or unavailable prompt leaves every entry failed and still
        eligible for escalation.
        """
        outcome = DeletionOutcome()
        candidates: list[FailedEntry] = []
        for item in failed:
            reason = self._refusal(item.path)
            if reason:
                outcome.skipped.append(FailedEntry(path=item.path, reason=reason, size_bytes=item.size_bytes))
            else:
                candidates.append(item)

        present = [item for item in candidates if os.path.lexists(item.path)]
        if present:
            try:
                self.executor.run(removal_commands([item.path for item in present]))
            except PrivilegeError as e:
                logger.warning("Privilege escalation failed: {}", e)
                outcome.failed = [
                    FailedEntry(path=item.path, reason=str(e), size_bytes=item.size_bytes) for item in candidates
                ]
                outcome.needs_privilege_escalation = True
                return outcome

        for item in candidates:
            if os.path.lexists(item.path):
                outcome.failed.append(
                    FailedEntry(path=item.path, reason=STILL_PRESENT_REASON, size_bytes=item.size_bytes)
                )
                continue
            entry = self.session.find_entry(item.path)
            size = entry.size_bytes if entry else item.size_bytes
            if entry:
                self.session.remove_entry(entry)
            outcome.succeeded_count += 1
            outcome.succeeded_bytes += size

        logger.info(
            "Privileged retry removed {} items, {} still present",
            outcome.succeeded_count,
            len(outcome.failed),
        )
        return outcome
