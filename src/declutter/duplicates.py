"""Two-phase duplicate detection: bucket by size, then hash within buckets."""

import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable

from loguru import logger

from declutter.errors import HashFailure
from declutter.hasher import content_hash
from declutter.models import DuplicateGroup, Entry
from declutter.scanner import expand_path, walk_files

# Files smaller than this are never hashed
MIN_DUPLICATE_SIZE = 1024

MAX_HASH_CHUNKS = 8

BUCKET_WEIGHT = 0.3
HASH_WEIGHT = 0.7

DUPLICATE_WALK_EXCLUDES = [".git", "node_modules", ".Trash", "Library"]

DUPLICATES_CATEGORY = "duplicates"


def hash_chunk_count(candidates: int) -> int:
    """Number of concurrent hashing chunks for a candidate count."""
    return max(1, min(MAX_HASH_CHUNKS, candidates // 10))


def _split(items: list, parts: int) -> list[list]:
    size, extra = divmod(len(items), parts)
    chunks = []
    start = 0
    for i in range(parts):
        end = start + size + (1 if i < extra else 0)
        if end > start:
            chunks.append(items[start:end])
        start = end
    return chunks


class DuplicateDetector:
    """Find files with identical content under a set of roots.

    Args:
        roots: Directories to search (``~`` is expanded)
        min_size_bytes: Size floor below which files are ignored
        max_workers: Worker pool size for both phases
        hasher: Callable returning a content digest for a path
        cancel: Shared cancellation flag
        progress_callback: Called with overall progress in [0, 1]
    """

    def __init__(
        self,
        roots: list[str],
        min_size_bytes: int = MIN_DUPLICATE_SIZE,
        max_workers: int = 8,
        hasher: Callable[..., str] = content_hash,
        cancel: threading.Event | None = None,
        progress_callback: Callable[[float], None] | None = None,
        exclude_names: list[str] = DUPLICATE_WALK_EXCLUDES,
    ):
        self.roots = roots
        self.min_size_bytes = max(min_size_bytes, 1)
        self.max_workers = max_workers
        self.hasher = hasher
        self.cancel = cancel or threading.Event()
        self.progress_callback = progress_callback
        self.exclude_names = exclude_names

    def _progress(self, value: float) -> None:
        if self.progress_callback:
            self.progress_callback(min(max(value, 0.0), 1.0))

    def _collect_root(self, root: Path) -> list[tuple[int, str]]:
        found = []
        for path in walk_files(root, include_hidden=False, exclude_names=self.exclude_names, cancel=self.cancel):
            try:
                size = path.lstat().st_size
            except OSError:
                continue
            if size >= self.min_size_bytes:
                found.append((size, str(path)))
        return found

    def bucket_by_size(self) -> dict[int, list[str]]:
        """Bucket phase: one task per root, merged by the calling thread."""
        roots = [expand_path(r) for r in self.roots]
        roots = [r for r in roots if r.is_dir()]
        buckets: dict[int, list[str]] = defaultdict(list)
        seen: set[str] = set()

        if not roots:
            self._progress(BUCKET_WEIGHT)
            return buckets

        done = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(roots))) as executor:
            futures = {executor.submit(self._collect_root, root): root for root in roots}
            for future in as_completed(futures):
                for size, path in future.result():
                    # Overlapping roots must not turn one file into a duplicate
                    if path in seen:
                        continue
                    seen.add(path)
                    buckets[size].append(path)
                done += 1
                self._progress(BUCKET_WEIGHT * (done / len(roots)))

        return buckets

    def _hash_files(self, chunk: list[tuple[int, str]]) -> list[tuple[int, str, str]]:
        hashed = []
        for size, path in chunk:
            if self.cancel.is_set():
                break
            try:
                digest = self.hasher(path)
            except HashFailure as e:
                logger.debug("Skipping {} for duplicates: {}", e.path, e.reason)
                continue
            hashed.append((size, digest, path))
        return hashed

    def hash_candidates(self, buckets: dict[int, list[str]]) -> dict[tuple[int, str], list[str]]:
        """Hash phase: only buckets with two or more members are hashed."""
        candidates = [(size, path) for size, paths in buckets.items() if len(paths) >= 2 for path in paths]
        by_digest: dict[tuple[int, str], list[str]] = defaultdict(list)
        if not candidates:
            self._progress(1.0)
            return by_digest

        chunks = _split(candidates, hash_chunk_count(len(candidates)))
        done = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunks))) as executor:
            futures = [executor.submit(self._hash_files, chunk) for chunk in chunks]
            for future in as_completed(futures):
                for size, digest, path in future.result():
                    by_digest[(size, digest)].append(path)
                done += 1
                self._progress(BUCKET_WEIGHT + HASH_WEIGHT * (done / len(chunks)))

        return by_digest

    def find(self) -> list[DuplicateGroup]:
        """Run both phases and build duplicate groups, largest waste first."""
        buckets = self.bucket_by_size()
        if self.cancel.is_set():
            logger.info("Duplicate search cancelled after bucketing")
            return []

        by_digest = self.hash_candidates(buckets)
        groups = build_groups(by_digest)
        logger.info("Found {} duplicate groups", len(groups))
        return groups


def build_groups(by_digest: dict[tuple[int, str], list[str]]) -> list[DuplicateGroup]:
    """
    Turn digest buckets into DuplicateGroups.

    Members are sorted by path so the retained copy is deterministic; the
    retained copy starts deselected and every other copy starts selected.
    """
    groups = []
    for (size, digest), paths in by_digest.items():
        if len(paths) < 2:
            continue
        members = []
        for index, path in enumerate(sorted(paths)):
            members.append(
                Entry(
                    path=path,
                    display_name=Path(path).name,
                    size_bytes=size,
                    category=DUPLICATES_CATEGORY,
                    is_selected=index > 0,
                    group_id=digest,
                )
            )
        groups.append(DuplicateGroup(content_hash=digest, members=members))

    groups.sort(key=lambda g: (-g.wasted_size, g.retained.path))
    return groups


def find_duplicates(roots: list[str], min_size_bytes: int = MIN_DUPLICATE_SIZE) -> list[DuplicateGroup]:
    """Convenience wrapper running a detector with default settings."""
    return DuplicateDetector(roots, min_size_bytes=min_size_bytes).find()
