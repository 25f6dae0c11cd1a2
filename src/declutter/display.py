"""Rich terminal display for declutter."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from declutter.categories import get_category
from declutter.models import (
    CategoryRule,
    DeletionOutcome,
    DiskUsage,
    DuplicateGroup,
    Entry,
    RiskLevel,
    ScanSession,
    ThinningResult,
    format_size,
)
from declutter.selection import SelectionState, category_state, group_state

console = Console()

# Rows shown per category before eliding
MAX_ROWS = 15


def risk_icon(risk_level: RiskLevel) -> str:
    """Get icon for risk level."""
    icons = {
        RiskLevel.SAFE: "[green]✓[/green]",
        RiskLevel.REVIEW: "[yellow]![/yellow]",
        RiskLevel.RISKY: "[red]✗[/red]",
    }
    return icons.get(risk_level, "?")


def risk_label(risk_level: RiskLevel) -> str:
    """Get styled label for risk level."""
    labels = {
        RiskLevel.SAFE: "[green]Safe[/green]",
        RiskLevel.REVIEW: "[yellow]Review[/yellow]",
        RiskLevel.RISKY: "[red]Risky[/red]",
    }
    return labels.get(risk_level, "Unknown")


def selection_mark(state: SelectionState) -> str:
    """Checkbox for a tri-state selection, escaped for rich markup."""
    return escape({
        SelectionState.ALL: "[x]",
        SelectionState.PARTIAL: "[-]",
        SelectionState.NONE: "[ ]",
    }[state])


def show_disk_summary(disk_usage: DiskUsage) -> None:
    """Display disk usage summary."""
    used_percent = disk_usage.used_percent

    # Color based on usage
    if used_percent >= 90:
        color = "red"
    elif used_percent >= 75:
        color = "yellow"
    else:
        color = "green"

    table = Table(title="Disk Summary", show_header=True, header_style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Free", justify="right")
    table.add_column("Usage", justify="right")

    table.add_row(
        f"{disk_usage.total_gb:.0f} GB",
        f"{disk_usage.used_gb:.0f} GB",
        f"[bold]{disk_usage.free_gb:.0f} GB[/bold]",
        f"[{color}]{used_percent:.0f}%[/{color}]",
    )

    console.print(table)
    console.print()


def show_session(session: ScanSession) -> None:
    """Display scan results grouped by category, largest categories first."""
    categories = sorted(
        session.entries_by_category.items(),
        key=lambda item: sum(e.size_bytes for e in item[1]),
        reverse=True,
    )

    summary = Table(title="Reclaimable Space", show_header=True, header_style="bold")
    summary.add_column("", width=3)
    summary.add_column("Category")
    summary.add_column("Items", justify="right")
    summary.add_column("Size", justify="right")
    summary.add_column("Selected", justify="center")

    for category_id, entries in categories:
        if not entries:
            continue
        rule = get_category(category_id)
        summary.add_row(
            risk_icon(rule.risk_level) if rule else "",
            rule.name if rule else category_id,
            str(len(entries)),
            format_size(sum(e.size_bytes for e in entries)),
            selection_mark(category_state(session, category_id)),
        )

    console.print(summary)
    console.print(
        f"\n[bold]Total: {format_size(session.total_bytes)}[/bold]"
        f"  (selected: {format_size(session.selected_bytes)})"
    )

    if session.status.value == "cancelled":
        console.print("[yellow]Scan was cancelled; results are partial.[/yellow]")
        if session.partial_categories:
            console.print(f"[dim]Stopped mid-scan: {', '.join(session.partial_categories)}[/dim]")


def show_entries(category_id: str, entries: list[Entry], limit: int = MAX_ROWS) -> None:
    """Display the individual entries of one category."""
    rule = get_category(category_id)
    table = Table(title=rule.name if rule else category_id, show_header=True, header_style="bold")
    table.add_column("", width=3)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Path", overflow="fold")

    for entry in entries[:limit]:
        name = escape(entry.display_name)
        if entry.is_orphaned:
            name = f"[yellow]{name}[/yellow]"
        mark = selection_mark(SelectionState.ALL if entry.is_selected else SelectionState.NONE)
        table.add_row(mark, name, entry.size_human, escape(entry.path))

    console.print(table)
    if len(entries) > limit:
        console.print(f"[dim]... and {len(entries) - limit} more[/dim]")


def show_duplicate_groups(groups: list[DuplicateGroup], limit: int = MAX_ROWS) -> None:
    """Display duplicate groups with the retained copy marked."""
    if not groups:
        console.print("[green]No duplicate files found.[/green]")
        return

    table = Table(title="Duplicate Files", show_header=True, header_style="bold")
    table.add_column("", width=3)
    table.add_column("Copies", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Wasted", justify="right")
    table.add_column("Kept")

    for group in groups[:limit]:
        table.add_row(
            selection_mark(group_state(group.members)),
            str(len(group.members)),
            format_size(group.size_bytes),
            f"[yellow]{format_size(group.wasted_size)}[/yellow]",
            escape(group.retained.path),
        )

    console.print(table)
    if len(groups) > limit:
        console.print(f"[dim]... and {len(groups) - limit} more groups[/dim]")
    wasted = sum(g.wasted_size for g in groups)
    console.print(f"\n[bold]Reclaimable from duplicates: {format_size(wasted)}[/bold]")


def show_cleanup_preview(entries: list[Entry], dry_run: bool = False) -> None:
    """Display cleanup preview."""
    if dry_run:
        console.print("[yellow]DRY RUN - No files will be deleted[/yellow]\n")

    totals: dict[str, tuple[int, int]] = {}
    for entry in entries:
        count, size = totals.get(entry.category, (0, 0))
        totals[entry.category] = (count + 1, size + entry.size_bytes)

    table = Table(title="Cleanup Preview", show_header=True, header_style="bold")
    table.add_column("", width=3)
    table.add_column("Category")
    table.add_column("Items", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Risk")

    for category_id, (count, size) in sorted(totals.items(), key=lambda x: x[1][1], reverse=True):
        rule = get_category(category_id)
        risk = rule.risk_level if rule else RiskLevel.REVIEW
        table.add_row(
            risk_icon(risk),
            rule.name if rule else category_id,
            str(count),
            format_size(size),
            risk_label(risk),
        )

    console.print(table)
    console.print(f"\n[bold]Total to clean: {format_size(sum(e.size_bytes for e in entries))}[/bold]")


def show_scanning_progress() -> Progress:
    """Create progress bar for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def show_deletion_outcome(outcome: DeletionOutcome) -> None:
    """Display the result of a deletion batch."""
    console.print()
    if outcome.dry_run:
        console.print(
            f"[yellow]Would delete {outcome.succeeded_count} items "
            f"({format_size(outcome.succeeded_bytes)})[/yellow]"
        )
    elif outcome.success:
        console.print("[bold green]Cleanup Complete![/bold green]")
    else:
        console.print("[bold yellow]Cleanup finished with failures[/bold yellow]")

    table = Table(show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    if not outcome.dry_run:
        table.add_row("Space freed", format_size(outcome.succeeded_bytes))
        table.add_row("Items deleted", str(outcome.succeeded_count))
    if outcome.failed:
        table.add_row("[red]Failed[/red]", str(len(outcome.failed)))
    if outcome.skipped:
        table.add_row("[dim]Skipped[/dim]", str(len(outcome.skipped)))
    console.print(table)

    for item in outcome.failed:
        console.print(f"  [red]✗[/red] {escape(item.path)}: {escape(item.reason)}")
    for item in outcome.skipped:
        console.print(f"  [dim]- {escape(item.path)}: {escape(item.reason)}[/dim]")

    if outcome.needs_privilege_escalation:
        console.print(
            "\n[yellow]Some items need administrator rights. "
            "Re-run with --escalate to retry them.[/yellow]"
        )


def show_categories(rules: list[CategoryRule]) -> None:
    """List categories with their risk level."""
    table = Table(title="Cleanup Categories", show_header=True, header_style="bold")
    table.add_column("", width=3)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description")

    for rule in rules:
        name = rule.name if rule.enabled else f"[dim]{rule.name} (disabled)[/dim]"
        table.add_row(risk_icon(rule.risk_level), rule.id, name, rule.description)

    console.print(table)


def show_category_explanation(rule: CategoryRule) -> None:
    """Display a category's locations, risk and consequences."""
    risk = rule.risk_level.value
    risk_color = {"safe": "green", "review": "yellow", "risky": "red"}.get(risk, "white")

    console.print(Panel(
        f"[bold]{rule.name}[/bold]\n"
        f"Risk Level: [{risk_color}]{risk.upper()}[/{risk_color}]",
        border_style=risk_color,
    ))

    if rule.paths:
        console.print("\n[bold]Paths:[/bold]")
        for path in rule.paths:
            console.print(f"  • {path}")

    console.print()
    console.print(f"[bold]What is it?[/bold]\n{rule.description}")
    console.print()
    console.print(f"[bold]What happens if deleted?[/bold]\n{rule.consequences}")

    if rule.orphan_aware:
        console.print()
        console.print(Panel(
            "Entries whose application is no longer installed are marked as not installed.",
            border_style="blue",
        ))

    if not rule.enabled:
        console.print()
        console.print(Panel(
            "[bold]Disabled:[/bold] this category is never scanned or cleaned.",
            border_style="red",
        ))


def show_thinning_result(result: ThinningResult) -> None:
    if result.success:
        console.print(
            f"[green]✓[/green] {escape(result.path)}: {format_size(result.bytes_freed)} freed "
            f"({format_size(result.original_size)} → {format_size(result.new_size)})"
        )
    else:
        suffix = " (original restored)" if result.rolled_back else ""
        console.print(f"[red]✗[/red] {escape(result.path)}: {escape(result.error or '')}{suffix}")


def show_status(disk_usage: DiskUsage) -> None:
    """Display quick status."""
    used_percent = disk_usage.used_percent

    if used_percent >= 90:
        status = "[red]CRITICAL[/red]"
    elif used_percent >= 75:
        status = "[yellow]WARNING[/yellow]"
    else:
        status = "[green]OK[/green]"

    console.print(f"Disk Status: {status}")
    console.print(f"  Total: {disk_usage.total_gb:.0f} GB")
    console.print(f"  Used:  {disk_usage.used_gb:.0f} GB ({used_percent:.0f}%)")
    console.print(f"  Free:  {disk_usage.free_gb:.0f} GB")


def confirm_action(message: str) -> bool:
    """Ask for confirmation."""
    from rich.prompt import Confirm

    return Confirm.ask(message)
