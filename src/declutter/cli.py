"""CLI interface for declutter."""

from pathlib import Path
from typing import Optional

import typer

from declutter import __version__
from declutter.categories import CATEGORIES, get_all_categories, get_category, get_default_categories
from declutter.cleaner import DeletionPipeline
from declutter.config import add_protection, load_settings, log_directory, remove_protection
from declutter.coordinator import ScanCoordinator
from declutter.display import (
    confirm_action,
    console,
    show_categories,
    show_category_explanation,
    show_cleanup_preview,
    show_deletion_outcome,
    show_disk_summary,
    show_duplicate_groups,
    show_entries,
    show_scanning_progress,
    show_session,
    show_status,
    show_thinning_result,
)
from declutter.duplicates import DuplicateDetector
from declutter.errors import SessionError
from declutter.log import init_logging
from declutter.models import RiskLevel, ScanSession
from declutter.scanner import get_disk_usage
from declutter.thinning import BinaryThinner

# Create Typer app
app = typer.Typer(
    name="declutter",
    help="Find and safely remove caches, logs, duplicates and application residue",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"declutter version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr."),
) -> None:
    """declutter - disk cleanup with trash-first deletion."""
    settings = load_settings()
    init_logging(log_directory(settings), level=settings.log_level, verbose=verbose)


def _unknown_category(category_id: str) -> None:
    console.print(f"[red]Unknown category: {category_id}[/red]")
    console.print("\nAvailable categories:")
    for cat_id in sorted(CATEGORIES.keys()):
        console.print(f"  • {cat_id}")
    raise typer.Exit(1)


def _resolve_categories(categories: Optional[list[str]], deep: bool) -> list[str]:
    if not categories:
        return [c.id for c in get_default_categories(include_deep=deep)]
    for category_id in categories:
        if category_id not in CATEGORIES:
            _unknown_category(category_id)
    return categories


def _is_safe(category_id: str) -> bool:
    rule = get_category(category_id)
    return rule is not None and rule.risk_level == RiskLevel.SAFE


def _run_scan(coordinator: ScanCoordinator, categories: list[str]) -> ScanSession:
    """Run a scan behind a progress bar; Ctrl-C stops it and keeps partial results."""
    with show_scanning_progress() as progress:
        task = progress.add_task("Scanning...", total=1.0)
        try:
            for update in coordinator.start_scan(categories):
                description = "Scanning..."
                if update.category_id:
                    rule = get_category(update.category_id)
                    description = f"Scanned {rule.name if rule else update.category_id}"
                elif update.current_path:
                    description = f"Scanning {Path(update.current_path).name}"
                progress.update(task, completed=update.progress, description=description)
        except SessionError as e:
            console.print(f"[red]Cannot start scan: {e}[/red]")
            raise typer.Exit(1)
        except KeyboardInterrupt:
            coordinator.stop_scan()
            console.print("[yellow]Scan stopped.[/yellow]")
    return coordinator.session


@app.command()
def scan(
    category: Optional[list[str]] = typer.Option(
        None, "--category", "-c", help="Scan only these categories (repeatable)"
    ),
    deep: bool = typer.Option(
        False,
        "--deep",
        help="Include large files, disk images and duplicates - slower, walks the home directory",
    ),
    details: bool = typer.Option(False, "--details", "-d", help="List individual entries"),
) -> None:
    """Scan for reclaimable space."""
    settings = load_settings()
    categories = _resolve_categories(category, deep)

    console.print("[bold blue]Scanning...[/bold blue]\n")
    session = _run_scan(ScanCoordinator(settings), categories)

    show_session(session)
    if details:
        for category_id, entries in session.entries_by_category.items():
            if entries:
                console.print()
                show_entries(category_id, entries)
    if session.duplicate_groups:
        console.print()
        show_duplicate_groups(session.duplicate_groups)

    if not deep:
        console.print()
        console.print(
            "[dim]Tip: Run [bold]declutter scan --deep[/bold] to find large files and duplicates[/dim]"
        )


@app.command()
def duplicates(
    paths: Optional[list[str]] = typer.Argument(None, help="Directories to search"),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Ignore files smaller than this (bytes)"),
) -> None:
    """Find files with identical content."""
    settings = load_settings()
    roots = paths or settings.duplicate_roots
    floor = min_size if min_size is not None else settings.duplicate_min_size_bytes

    with show_scanning_progress() as progress:
        task = progress.add_task("Comparing files...", total=1.0)
        detector = DuplicateDetector(
            roots,
            min_size_bytes=floor,
            max_workers=settings.max_workers,
            progress_callback=lambda value: progress.update(task, completed=value),
        )
        try:
            groups = detector.find()
        except KeyboardInterrupt:
            detector.cancel.set()
            console.print("[yellow]Search stopped.[/yellow]")
            raise typer.Exit(1)

    show_duplicate_groups(groups)


@app.command()
def clean(
    safe: bool = typer.Option(False, "--safe", help="Clean only safe categories"),
    category: Optional[list[str]] = typer.Option(
        None, "--category", "-c", help="Clean only these categories (repeatable)"
    ),
    deep: bool = typer.Option(False, "--deep", help="Include large files, disk images and duplicates"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Simulate without deleting"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompts"),
    escalate: bool = typer.Option(
        False, "--escalate", help="Retry failures once with administrator rights"
    ),
) -> None:
    """Scan, then move selected items to the trash."""
    if not safe and not category:
        console.print("[red]Error: Specify --safe or --category[/red]")
        console.print("  declutter clean --safe                 # Clean all safe items")
        console.print("  declutter clean --category user_cache  # Clean specific category")
        raise typer.Exit(1)

    settings = load_settings()
    categories = _resolve_categories(category, deep)
    if not category:
        categories = [c for c in categories if _is_safe(c)]

    session = _run_scan(ScanCoordinator(settings), categories)
    selected = [e for e in session.selected_entries() if e.category in categories]
    if not selected:
        console.print("[yellow]Nothing to clean.[/yellow]")
        raise typer.Exit(0)

    console.print()
    show_cleanup_preview(selected, dry_run=dry_run)

    if not yes and not dry_run:
        console.print()
        if not confirm_action("Proceed with cleanup?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    pipeline = DeletionPipeline(session, settings=settings, max_workers=settings.max_workers)
    outcome = pipeline.delete_entries(selected, dry_run=dry_run)
    show_deletion_outcome(outcome)

    if outcome.needs_privilege_escalation and escalate:
        if yes or confirm_action(f"Retry {len(outcome.failed)} items with administrator rights?"):
            retry = pipeline.retry_with_privilege_escalation(outcome.failed)
            show_deletion_outcome(retry)
            outcome = retry

    if outcome.failed:
        raise typer.Exit(1)


@app.command()
def explain(
    category: str = typer.Argument(..., help="Category to explain"),
) -> None:
    """Explain a category in detail."""
    rule = get_category(category)
    if not rule:
        _unknown_category(category)
    show_category_explanation(rule)


@app.command()
def status() -> None:
    """Show current disk usage summary."""
    disk_usage = get_disk_usage()
    show_status(disk_usage)
    console.print()
    show_disk_summary(disk_usage)


@app.command(name="list")
def list_categories() -> None:
    """List all cleanup categories."""
    show_categories(get_all_categories())
    console.print("\n[dim]Run [bold]declutter explain <category>[/bold] for details[/dim]")


@app.command()
def protect(path: str = typer.Argument(..., help="Path to protect from cleanup")) -> None:
    """Never scan or delete a path."""
    result = add_protection(path)
    if not result["success"]:
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Protected:[/green] {result['path']}")


@app.command()
def unprotect(path: str = typer.Argument(..., help="Path to remove from the protected list")) -> None:
    """Remove a path from the protected list."""
    result = remove_protection(path)
    if not result["success"]:
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]No longer protected:[/green] {result['path']}")


@app.command()
def thin(
    binary: Path = typer.Argument(..., help="Universal binary to slim"),
    arch: str = typer.Option("arm64", "--arch", help="Architecture to keep"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompts"),
) -> None:
    """Strip other CPU architectures from a binary (backup restored on failure)."""
    if not yes and not confirm_action(f"Rewrite {binary} keeping only {arch}?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(0)

    result = BinaryThinner(arch=arch).thin(binary)
    show_thinning_result(result)
    if not result.success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
