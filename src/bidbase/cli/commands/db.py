"""
Database management commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Database operations",
    no_args_is_help=True,
)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "persistence" / "migrations"


def _alembic_config():
    """Alembic config pointed at the packaged migrations and configured database."""
    from alembic.config import Config

    from bidbase.core.config.loader import load_app_config

    ini_path = Path("alembic.ini")
    alembic_cfg = Config(str(ini_path)) if ini_path.exists() else Config()
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser interpolation treats % specially
    alembic_cfg.set_main_option("sqlalchemy.url", load_app_config().database.url.replace("%", "%%"))
    # Keep bidbase loggers alive; fileConfig would disable them
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


@app.command("init")
def init_database(
    drop_existing: bool = typer.Option(
        False,
        "--drop",
        help="Drop existing tables before creating",
    ),
) -> None:
    """Initialize the database schema.

    Creates all tables. Use --drop to reset the database.
    """
    from bidbase.core.config.loader import load_app_config
    from bidbase.persistence.db import drop_db, init_db

    config = load_app_config()

    if drop_existing:
        if not typer.confirm("This will DELETE ALL DATA. Continue?", default=False):
            raise typer.Abort()

        console.print("[yellow]Dropping existing tables...[/yellow]")
        drop_db(config.database.url)

    console.print("Creating database schema...")
    init_db(config.database.url)

    console.print("[green]OK[/green] Database initialized")


@app.command("migrate")
def run_migrations(
    revision: str = typer.Option(
        "head",
        "--revision",
        "-r",
        help="Target revision (default: head)",
    ),
) -> None:
    """Run database migrations."""
    from alembic import command

    alembic_cfg = _alembic_config()

    console.print(f"Running migrations to: {revision}")

    try:
        command.upgrade(alembic_cfg, revision)
        console.print("[green]OK[/green] Migrations complete")
    except Exception as e:
        err_console.print(f"[red]Migration failed:[/red] {e}")
        raise typer.Exit(1)


@app.command("downgrade")
def downgrade_database(
    revision: str = typer.Argument(..., help="Target revision"),
) -> None:
    """Downgrade database to a specific revision."""
    from alembic import command

    if not typer.confirm(f"Downgrade to revision '{revision}'? This may lose data."):
        raise typer.Abort()

    alembic_cfg = _alembic_config()

    console.print(f"Downgrading to: {revision}")

    try:
        command.downgrade(alembic_cfg, revision)
        console.print("[green]OK[/green] Downgrade complete")
    except Exception as e:
        err_console.print(f"[red]Downgrade failed:[/red] {e}")
        raise typer.Exit(1)


@app.command("current")
def show_current() -> None:
    """Show current database revision."""
    from alembic import command

    console.print("[bold]Current database revision:[/bold]")
    command.current(_alembic_config(), verbose=True)


@app.command("history")
def show_history() -> None:
    """Show migration history."""
    from alembic import command

    console.print("[bold]Migration history:[/bold]")
    command.history(_alembic_config(), indicate_current=True)
