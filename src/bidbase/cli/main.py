"""
BidBase CLI - Main entry point.

Terminal front end for the tender ingestion pipeline: sync runs, tender
browsing, database management and the HTTP API server.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from bidbase import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="South African government tender ingestion and search",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """BidBase - Tender ingestion pipeline."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import db, sync, tenders  # noqa: E402

app.add_typer(sync.app, name="sync", help="Run sync jobs against the OCDS feed")
app.add_typer(tenders.app, name="tenders", help="Browse stored tenders")
app.add_typer(db.app, name="db", help="Database operations")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize BidBase database and configuration.

    Creates required directories, a default configuration file,
    and the database schema.
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn

    from bidbase.core.config.loader import DEFAULT_APP_CONFIG_PATH, load_app_config
    from bidbase.persistence.db import init_db

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Creating default configuration...", total=None)

        if not DEFAULT_APP_CONFIG_PATH.exists() or force:
            _create_default_app_config(DEFAULT_APP_CONFIG_PATH)

        progress.update(task, description="Creating directories...")
        config = load_app_config()
        config.ensure_directories()

        progress.update(task, description="Initializing database...")
        init_db(config.database.url)

        progress.update(task, description="Done!")

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - BidBase initialized successfully![/bold green]\n\n"
        "Created:\n"
        "  - [cyan]configs/app.yaml[/cyan] - Application configuration\n"
        "  - [cyan]data/[/cyan] - Database storage\n"
        "  - [cyan]logs/[/cyan] - Log files\n\n"
        "Next steps:\n"
        "  1. Set [yellow]OCDS_API_KEY[/yellow] in .env if the feed requires it\n"
        "  2. Run a sync: [yellow]bidbase sync run --pages 3[/yellow]\n"
        "  3. Browse: [yellow]bidbase tenders list[/yellow] or [yellow]bidbase serve[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


def _create_default_app_config(path: Path) -> None:
    """Create default app.yaml configuration."""
    default_config = """\
# BidBase Configuration
# Environment overrides: DATABASE_URL, OCDS_API_URL, OCDS_API_KEY, LOG_LEVEL

config_dir: configs
data_dir: data

database:
  url: sqlite:///data/bidbase.db
  echo: false

logging:
  level: INFO
  file: logs/bidbase.log
  json_format: true
  rich_console: true

feed:
  base_url: ${OCDS_API_URL:-https://api.etenders.gov.za/v1}
  releases_path: releases
  api_key: ${OCDS_API_KEY:-}
  timeout_seconds: 30
  retry:
    max_attempts: 3
    min_wait: 1
    max_wait: 30

sync:
  page_number: 1
  page_size: 100
  max_workers: 1
  error_sample_limit: 10

api:
  host: 127.0.0.1
  port: 8000
  cors_origins: ["*"]
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status() -> None:
    """Show BidBase status and statistics."""
    from rich.table import Table
    from sqlalchemy import inspect

    from bidbase.core.config.loader import load_app_config
    from bidbase.persistence.db import get_engine, get_session
    from bidbase.persistence.repo import TenderRepository

    config = load_app_config()
    engine = get_engine(config.database.url, echo=config.database.echo)

    if not inspect(engine).has_table("tenders"):
        err_console.print("[red]BidBase not initialized. Run:[/red] bidbase init")
        raise typer.Exit(1)

    console.print()
    console.print("[bold]BidBase Status[/bold]")
    console.print(f"[dim]Database:[/dim] {config.database.url}")
    console.print(f"[dim]Feed:[/dim] {config.feed.base_url}")
    console.print()

    with get_session() as session:
        repo = TenderRepository(session)
        stats = repo.get_platform_stats()

        stats_table = Table(title="Tenders", show_header=True, header_style="bold magenta")
        stats_table.add_column("Metric", style="cyan")
        stats_table.add_column("Value", justify="right")

        stats_table.add_row("Total", str(stats["total_tenders"]))
        stats_table.add_row("Open", str(stats["open_tenders"]))
        stats_table.add_row("Closed", str(stats["closed_tenders"]))
        stats_table.add_row("Awarded", str(stats["awarded_tenders"]))
        stats_table.add_row("Cancelled", str(stats["cancelled_tenders"]))
        stats_table.add_row("Closing within 7 days", str(stats["closing_soon"]))
        stats_table.add_row("Open value (ZAR)", f"{stats['total_value']:,.2f}")
        last_updated = stats["last_updated"]
        stats_table.add_row("Last updated", last_updated.strftime("%Y-%m-%d %H:%M") if last_updated else "Never")

        console.print(stats_table)


# =============================================================================
# Serve Command
# =============================================================================


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: config api.host)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (default: config api.port)"),
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from bidbase.api.app import create_app
    from bidbase.core.config.loader import load_app_config
    from bidbase.core.logging import setup_logging

    config = load_app_config()
    config.ensure_directories()
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )

    api = create_app(config)
    bind_host = host or config.api.host
    bind_port = port or config.api.port

    console.print(f"Serving BidBase API on [cyan]http://{bind_host}:{bind_port}[/cyan]")
    uvicorn.run(api, host=bind_host, port=bind_port)


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
