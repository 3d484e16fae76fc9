"""
Sync commands for pulling releases from the OCDS feed.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run sync jobs against the OCDS feed",
    no_args_is_help=True,
)


@app.command("run")
def run_sync_command(
    page: Optional[int] = typer.Option(
        None,
        "--page",
        "-p",
        min=1,
        help="First page to fetch (default: config sync.page_number)",
    ),
    page_size: Optional[int] = typer.Option(
        None,
        "--page-size",
        "-s",
        min=1,
        max=1000,
        help="Releases per page (default: config sync.page_size)",
    ),
    pages: int = typer.Option(
        1,
        "--pages",
        "-n",
        min=0,
        help="Pages to fetch; 0 means until the feed returns an empty page",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        max=16,
        help="Releases reconciled concurrently (default: config sync.max_workers)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Normalize without saving to the database",
    ),
) -> None:
    """Fetch releases, normalize them and upsert the tenders.

    Ctrl+C stops the run after the page in progress.

    Examples:
        bidbase sync run
        bidbase sync run --page 3 --page-size 50
        bidbase sync run --pages 0 --workers 4
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from bidbase.core.config.loader import ConfigError, load_app_config
    from bidbase.core.errors import SyncError
    from bidbase.core.logging import setup_logging
    from bidbase.core.orchestrator import SyncRunner, run_sync

    try:
        config = load_app_config()
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    config.ensure_directories()
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )

    if not dry_run:
        from bidbase.persistence.db import init_db

        init_db(config.database.url, echo=config.database.echo)

    console.print()
    console.print(f"[bold]Syncing from:[/bold] {config.feed.base_url}")
    if dry_run:
        console.print("[yellow]Dry run mode - results will not be saved[/yellow]")
    console.print()

    previous_handler = signal.getsignal(signal.SIGINT)

    def install_cancel(runner: SyncRunner) -> None:
        def on_interrupt(signum, frame) -> None:
            err_console.print("[yellow]Interrupted - finishing current page...[/yellow]")
            runner.cancel()

        signal.signal(signal.SIGINT, on_interrupt)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Syncing tenders...[/cyan]", total=None)

        try:
            result = asyncio.run(run_sync(
                config,
                page_number=page,
                page_size=page_size,
                pages=pages or None,
                max_workers=workers,
                dry_run=dry_run,
                runner_hook=install_cancel,
            ))
        except SyncError as e:
            progress.update(task, description=f"[red]Sync failed - {e}[/red]")
            if e.result is not None:
                _show_summary(e.result)
            err_console.print(f"[red]Sync failed:[/red] {e}")
            raise typer.Exit(1)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        if result.error_count > 0:
            progress.update(
                task,
                description=f"[yellow]Completed with {result.error_count} errors[/yellow]",
            )
        else:
            progress.update(task, description="[green]Completed successfully[/green]")

    console.print()
    _show_summary(result)


def _show_summary(result) -> None:
    """Show summary table of a sync run."""
    table = Table(title=f"Sync Summary ({result.run_id})")

    table.add_column("Pages", justify="right")
    table.add_column("Fetched", justify="right")
    table.add_column("Processed", justify="right", style="green")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Duration", justify="right")

    duration = f"{result.duration_seconds:.1f}s" if result.duration_seconds else "-"
    table.add_row(
        str(result.pages_fetched),
        str(result.total_fetched),
        str(result.processed_count),
        str(result.error_count),
        duration,
    )

    console.print(table)

    if result.cancelled:
        console.print("[yellow]Run cancelled before all pages were fetched[/yellow]")

    if result.errors:
        console.print()
        console.print("[bold red]Errors:[/bold red]")
        for error in result.errors:
            console.print(f"  - {error}")
        if result.error_count > len(result.errors):
            console.print(f"  [dim]... and {result.error_count - len(result.errors)} more[/dim]")
