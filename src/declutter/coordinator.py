"""Concurrent scan orchestration.

A ScanCoordinator owns one ScanSession at a time. Category scans run on a
worker pool and hand their results back as return values; worker progress
arrives through a queue. Only the coordinator's own thread mutates the
session.
"""

import queue
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterator

from loguru import logger

from declutter.apps import InstalledEntitySet
from declutter.categories import get_category
from declutter.config import Settings
from declutter.duplicates import DuplicateDetector
from declutter.errors import SessionError
from declutter.models import (
    AppIdentity,
    CategoryRule,
    DuplicateGroup,
    Entry,
    ScanProgress,
    ScanSession,
    ScanStatus,
)
from declutter.scanner import CategoryScanner

# Seconds between checks of the worker message queue
POLL_INTERVAL = 0.1

ScanResult = tuple[list[Entry], list[DuplicateGroup]]


class ScanCoordinator:
    """Fan category scans out to workers and fold their results into a session.

    Args:
        settings: Scan policy; defaults are used when omitted
        entity_set: Builds the installed-application identity for each pass
        home_resolver: Returns the user's home directory
        detector_factory: Creates the DuplicateDetector for the duplicates category
    """

    def __init__(
        self,
        settings: Settings | None = None,
        entity_set: InstalledEntitySet | None = None,
        home_resolver: Callable[[], Path] = Path.home,
        detector_factory: Callable[..., DuplicateDetector] = DuplicateDetector,
    ):
        self.settings = settings or Settings()
        self.entity_set = entity_set or InstalledEntitySet()
        self.home_resolver = home_resolver
        self.detector_factory = detector_factory
        self.session = ScanSession()
        self.cancel_event = threading.Event()
        self._messages: queue.Queue = queue.Queue()

    def stop_scan(self) -> None:
        """Request cancellation; running work stops at its next checkpoint."""
        self.cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def resolve_rules(self, categories: list[str | CategoryRule]) -> list[CategoryRule]:
        """Look up category ids and apply configured thresholds and exclusions."""
        rules = []
        for item in categories:
            rule = get_category(item) if isinstance(item, str) else item
            if rule is None:
                logger.warning("Unknown category {}", item)
                continue
            if rule.id in self.settings.excluded_categories:
                continue
            if rule.id == "large_files":
                rule = rule.model_copy(update={"min_size_bytes": self.settings.large_file_min_bytes})
            rules.append(rule)
        return rules

    def _check_home(self) -> Path:
        try:
            home = self.home_resolver()
        except (RuntimeError, KeyError, OSError) as e:
            raise SessionError(f"Cannot resolve home directory: {e}") from e
        if not home or not Path(home).is_dir():
            raise SessionError(f"Home directory does not exist: {home}")
        return Path(home)

    def _build_identity(self, rules: list[CategoryRule]) -> AppIdentity | None:
        if not any(rule.orphan_aware for rule in rules):
            return None
        # The process table changes between passes
        return self.entity_set.build()

    def scan_rule(self, rule: CategoryRule, scanner: CategoryScanner) -> ScanResult:
        """Run one category on a worker thread; returns entries and duplicate groups."""
        if rule.special == "duplicates":
            detector = self.detector_factory(
                roots=self.settings.duplicate_roots,
                min_size_bytes=self.settings.duplicate_min_size_bytes,
                max_workers=self.settings.max_workers,
                cancel=self.cancel_event,
                progress_callback=lambda value: self._messages.put(("fraction", rule.id, value)),
            )
            groups = detector.find()
            return [member for group in groups for member in group.members], groups
        return scanner.scan(rule), []

    def _run_rule(self, rule: CategoryRule, scanner: CategoryScanner) -> tuple[ScanResult, bool]:
        result = self.scan_rule(rule, scanner)
        # A walk still running when cancel was requested may have stopped early
        return result, self.is_cancelled

    def start_scan(self, categories: list[str | CategoryRule]) -> Iterator[ScanProgress]:
        """
        Scan categories concurrently, yielding progress as results arrive.

        A new session replaces the previous one. After ``stop_scan`` no
        further categories are scheduled; results already returned are kept.
        Categories still running when the stop lands are recorded in
        ``session.partial_categories`` rather than ``completed_categories``.

        Raises:
            SessionError: If the home directory cannot be resolved
        """
        self._check_home()

        rules = self.resolve_rules(categories)
        self.session = ScanSession(status=ScanStatus.SCANNING)
        self.cancel_event = threading.Event()
        self._messages = queue.Queue()
        session = self.session
        total = len(rules)

        logger.info("Starting scan of {} categories", total)
        identity = self._build_identity(rules)
        scanner = CategoryScanner(
            identity=identity,
            is_protected=self.settings.is_protected,
            chunk_files=self.settings.size_chunk_files,
            cancel=self.cancel_event,
            on_path=lambda path: self._messages.put(("path", None, path)),
        )

        pending = list(rules)
        running: dict[Future, CategoryRule] = {}
        fractions: dict[str, float] = {}
        max_workers = self.settings.max_workers

        def current_progress() -> float:
            if total == 0:
                return 1.0
            finished = session.completed_categories + session.partial_categories
            done = len(finished)
            partial = sum(v for k, v in fractions.items() if k not in finished)
            return min((done + partial) / total, 1.0)

        def advance() -> None:
            # Progress never moves backwards
            session.progress = max(session.progress, current_progress())

        executor = ThreadPoolExecutor(max_workers=max_workers)
        try:
            while pending or running:
                while pending and len(running) < max_workers and not self.is_cancelled:
                    rule = pending.pop(0)
                    running[executor.submit(self._run_rule, rule, scanner)] = rule

                if not running:
                    break

                done, _ = wait(list(running), timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)

                path_changed = self._drain_messages(session, fractions)
                if path_changed:
                    advance()
                    yield ScanProgress(progress=session.progress, current_path=session.current_path)

                for future in done:
                    rule = running.pop(future)
                    try:
                        (entries, groups), cut_short = future.result()
                    except Exception as e:
                        logger.warning("Category {} failed: {}", rule.id, e)
                        entries, groups, cut_short = [], [], False

                    if groups:
                        session.add_duplicate_groups(rule.id, groups)
                    else:
                        session.add_entries(rule.id, entries)
                    if cut_short:
                        session.partial_categories.append(rule.id)
                    else:
                        session.completed_categories.append(rule.id)
                    advance()
                    logger.debug("Category {} finished with {} entries", rule.id, len(entries))
                    yield ScanProgress(
                        progress=session.progress,
                        current_path=session.current_path,
                        category_id=rule.id,
                        new_entries=session.entries(rule.id),
                    )
        finally:
            # Reached with work in flight only when the consumer abandoned the stream
            if running:
                self.cancel_event.set()
            executor.shutdown(wait=True, cancel_futures=True)
            if running:
                session.status = ScanStatus.CANCELLED

        if self.is_cancelled:
            session.status = ScanStatus.CANCELLED
            logger.info(
                "Scan cancelled after {} of {} categories ({} partial)",
                len(session.completed_categories),
                total,
                len(session.partial_categories),
            )
        else:
            session.status = ScanStatus.COMPLETED
            session.progress = 1.0
            logger.info("Scan completed: {} entries", len(session.all_entries()))

        session.current_path = ""
        yield ScanProgress(progress=session.progress, status=session.status)

    def _drain_messages(self, session: ScanSession, fractions: dict[str, float]) -> bool:
        changed = False
        while True:
            try:
                kind, category_id, value = self._messages.get_nowait()
            except queue.Empty:
                return changed
            if kind == "path":
                session.current_path = value
                changed = True
            elif kind == "fraction":
                fractions[category_id] = max(fractions.get(category_id, 0.0), value)
                changed = True

    def run_scan(
        self,
        categories: list[str | CategoryRule],
        progress_callback: Callable[[ScanProgress], None] | None = None,
    ) -> ScanSession:
        """Run a scan to completion (or cancellation) and return its session."""
        for update in self.start_scan(categories):
            if progress_callback:
                progress_callback(update)
        return self.session
