"""Tests for display module."""

from unittest.mock import patch

from rich.console import Console

from declutter.categories import get_category
from declutter.display import (
    confirm_action,
    risk_icon,
    risk_label,
    selection_mark,
    show_category_explanation,
    show_cleanup_preview,
    show_deletion_outcome,
    show_disk_summary,
    show_duplicate_groups,
    show_entries,
    show_session,
    show_status,
    show_thinning_result,
)
from declutter.models import (
    DeletionOutcome,
    DiskUsage,
    DuplicateGroup,
    Entry,
    FailedEntry,
    RiskLevel,
    ScanSession,
    ScanStatus,
    ThinningResult,
)
from declutter.selection import SelectionState


def recording_console() -> Console:
    return Console(record=True, width=120, force_terminal=False)


def entry(name: str, size: int = 1000, category: str = "user_cache", **kwargs) -> Entry:
    return Entry(path=f"/tmp/{name}", display_name=name, size_bytes=size, category=category, **kwargs)


class TestRiskIcon:
    def test_safe_icon(self):
        icon = risk_icon(RiskLevel.SAFE)
        assert "✓" in icon
        assert "green" in icon

    def test_risky_icon(self):
        icon = risk_icon(RiskLevel.RISKY)
        assert "✗" in icon
        assert "red" in icon

    def test_unknown_icon(self):
        assert risk_icon("unknown") == "?"


class TestRiskLabel:
    def test_review_label(self):
        label = risk_label(RiskLevel.REVIEW)
        assert "Review" in label
        assert "yellow" in label


class TestSelectionMark:
    def test_marks(self):
        assert selection_mark(SelectionState.ALL) == "\\[x]"
        assert selection_mark(SelectionState.PARTIAL) == "[-]"
        assert selection_mark(SelectionState.NONE) == "[ ]"


class TestShowDiskSummary:
    @patch("declutter.display.console")
    def test_high_usage(self, mock_console):
        usage = DiskUsage(
            total_bytes=100 * 1000**3,
            used_bytes=92 * 1000**3,  # 92% - critical
            free_bytes=8 * 1000**3,
        )
        show_disk_summary(usage)
        mock_console.print.assert_called()


class TestShowStatus:
    def test_levels(self):
        for used, label in [(50, "OK"), (80, "WARNING"), (95, "CRITICAL")]:
            console = recording_console()
            usage = DiskUsage(total_bytes=100 * 1000**3, used_bytes=used * 1000**3, free_bytes=(100 - used) * 1000**3)
            with patch("declutter.display.console", console):
                show_status(usage)
            assert label in console.export_text()


class TestShowSession:
    def test_categories_with_selection_state(self):
        session = ScanSession(status=ScanStatus.CANCELLED)
        session.add_entries("user_cache", [entry("a"), entry("b", is_selected=False)])
        session.add_entries("user_logs", [entry("c.log", category="user_logs")])
        console = recording_console()

        with patch("declutter.display.console", console):
            show_session(session)

        text = console.export_text()
        assert "User Caches" in text
        assert "[-]" in text
        assert "Total: 3.0 KB" in text
        assert "partial" in text

    def test_markup_in_names_and_paths_printed_literally(self):
        weird = Entry(path="/tmp/[/x]/[bold]report", display_name="[/x] [bold]report", size_bytes=10, category="user_cache")
        orphan = entry("[red]gone", is_orphaned=True)
        console = recording_console()
        with patch("declutter.display.console", console):
            show_entries("user_cache", [weird, orphan])
            show_deletion_outcome(DeletionOutcome(failed=[FailedEntry(path="/tmp/[/x]", reason="[denied]")]))
        text = console.export_text()
        assert "[/x] [bold]report" in text
        assert "[red]gone" in text
        assert "/tmp/[/x]: [denied]" in text

    def test_partial_categories_listed_after_cancel(self):
        session = ScanSession(status=ScanStatus.CANCELLED, partial_categories=["large_files"])
        console = recording_console()
        with patch("declutter.display.console", console):
            show_session(session)
        assert "Stopped mid-scan: large_files" in console.export_text()

    def test_entries_elided_past_limit(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_entries("user_cache", [entry(f"e{i}") for i in range(5)], limit=2)
        assert "... and 3 more" in console.export_text()


class TestShowDuplicateGroups:
    def test_no_groups(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_duplicate_groups([])
        assert "No duplicate files found" in console.export_text()

    def test_wasted_total(self):
        members = [entry(n, size=2000, category="duplicates", is_selected=n != "a") for n in ["a", "b", "c"]]
        console = recording_console()
        with patch("declutter.display.console", console):
            show_duplicate_groups([DuplicateGroup(content_hash="h", members=members)])
        text = console.export_text()
        assert "/tmp/a" in text
        assert "Reclaimable from duplicates: 4.0 KB" in text


class TestShowCleanupPreview:
    def test_dry_run_banner(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_cleanup_preview([entry("a"), entry("b")], dry_run=True)
        text = console.export_text()
        assert "DRY RUN" in text
        assert "Total to clean: 2.0 KB" in text


class TestShowDeletionOutcome:
    def test_failures_and_escalation_hint(self):
        outcome = DeletionOutcome(
            succeeded_count=1,
            succeeded_bytes=1000,
            failed=[FailedEntry(path="/tmp/locked", reason="Permission denied")],
            skipped=[FailedEntry(path="/System", reason="Blocked path")],
            needs_privilege_escalation=True,
        )
        console = recording_console()
        with patch("declutter.display.console", console):
            show_deletion_outcome(outcome)
        text = console.export_text()
        assert "finished with failures" in text
        assert "/tmp/locked: Permission denied" in text
        assert "/System: Blocked path" in text
        assert "--escalate" in text

    def test_complete(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_deletion_outcome(DeletionOutcome(succeeded_count=2, succeeded_bytes=2000))
        assert "Cleanup Complete" in console.export_text()


class TestShowCategoryExplanation:
    @patch("declutter.display.console")
    def test_orphan_aware_note(self, mock_console):
        show_category_explanation(get_category("app_residue"))
        assert mock_console.print.call_count > 4


class TestShowThinningResult:
    def test_failure_mentions_restore(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_thinning_result(ThinningResult(path="/bin/tool", error="codesign failed", rolled_back=True))
        assert "original restored" in console.export_text()

    def test_failure_without_rollback(self):
        console = recording_console()
        with patch("declutter.display.console", console):
            show_thinning_result(ThinningResult(path="/tmp/folder", error="Not a file"))
        text = console.export_text()
        assert "Not a file" in text
        assert "restored" not in text


class TestConfirmAction:
    @patch("rich.prompt.Confirm.ask", return_value=True)
    def test_confirm_yes(self, mock_ask):
        assert confirm_action("Proceed?") is True
        mock_ask.assert_called_once_with("Proceed?")
