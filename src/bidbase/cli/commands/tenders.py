"""
Tender browsing commands.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Browse stored tenders",
    no_args_is_help=True,
)


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _open_session():
    from bidbase.core.config.loader import load_app_config
    from bidbase.persistence.db import get_engine, get_session

    config = load_app_config()
    get_engine(config.database.url, echo=config.database.echo)
    return get_session()


@app.command("list")
def list_tenders(
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Words to match in title, description or buyer"),
    province: Optional[str] = typer.Option(None, "--province", help="Filter by province"),
    industry: Optional[str] = typer.Option(None, "--industry", help="Filter by industry category"),
    status: str = typer.Option("open", "--status", "-s", help="open, closed, cancelled, awarded or all"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Result page"),
    page_size: int = typer.Option(20, "--page-size", "-n", min=1, max=200, help="Results per page"),
    sort_by: str = typer.Option("date_published", "--sort-by", help="date_published, date_closing, value_amount or title"),
    order: str = typer.Option("desc", "--order", help="asc or desc"),
    format: str = typer.Option("table", "--format", "-f", help="Output format (table, json)"),
) -> None:
    """List tenders with filters.

    Examples:
        bidbase tenders list --province "Western Cape" --industry Construction
        bidbase tenders list --search "road maintenance" --status all
    """
    from bidbase.api.schemas import tender_to_dict
    from bidbase.core.logging import json_dumps
    from bidbase.core.normalize.lifecycle import TenderStatus
    from bidbase.persistence.repo import ALL, SORT_COLUMNS, SearchFilters, TenderRepository

    statuses = [s.value for s in TenderStatus]
    if status != ALL and status not in statuses:
        err_console.print(f"[red]Unknown status:[/red] {status} (expected one of {', '.join(statuses)}, all)")
        raise typer.Exit(1)
    if sort_by not in SORT_COLUMNS:
        err_console.print(f"[red]Unknown sort field:[/red] {sort_by}")
        raise typer.Exit(1)
    if order not in ("asc", "desc"):
        err_console.print(f"[red]Unknown sort order:[/red] {order}")
        raise typer.Exit(1)

    filters = SearchFilters(
        search=search,
        province=province,
        industry=industry,
        status=None if status == ALL else status,
    )

    with _open_session() as session:
        repo = TenderRepository(session)
        tenders, total = repo.search(filters, page=page, page_size=page_size, sort_by=sort_by, sort_order=order)

        if not tenders:
            console.print("[dim]No tenders found matching criteria.[/dim]")
            return

        if format == "json":
            data = [tender_to_dict(t) for t in tenders]
            console.print_json(json_dumps(data))
            return

        table = Table(title=f"Tenders (page {page}, {total} total)")
        table.add_column("OCID", style="dim", no_wrap=True)
        table.add_column("Title", max_width=50)
        table.add_column("Buyer", max_width=30)
        table.add_column("Province", style="cyan")
        table.add_column("Industry", style="magenta")
        table.add_column("Status")
        table.add_column("Closes", justify="right")
        table.add_column("Value", justify="right")

        status_styles = {
            "open": "green",
            "closed": "dim",
            "cancelled": "red",
            "awarded": "yellow",
        }

        for t in tenders:
            style = status_styles.get(t.status, "white")
            value = f"{t.value_currency} {t.value_amount:,.2f}" if t.value_amount is not None else "-"
            table.add_row(
                t.ocid,
                t.title,
                t.buyer_name,
                t.province,
                t.industry,
                f"[{style}]{t.status}[/{style}]",
                _fmt_date(t.date_closing),
                value,
            )

        console.print(table)


@app.command("show")
def show_tender(
    ocid: str = typer.Argument(..., help="Tender OCID"),
) -> None:
    """Show details of a specific tender."""
    from bidbase.persistence.repo import TenderRepository

    with _open_session() as session:
        tender = TenderRepository(session).get_by_ocid(ocid)

        if not tender:
            err_console.print(f"[red]Tender not found:[/red] {ocid}")
            raise typer.Exit(1)

        lines = [
            f"[bold]OCID:[/bold] {tender.ocid}",
            f"[bold]Status:[/bold] {tender.status}",
            f"[bold]Buyer:[/bold] {tender.buyer_name}",
            f"[bold]Province:[/bold] {tender.province}",
            f"[bold]Industry:[/bold] {tender.industry}",
            f"[bold]Published:[/bold] {_fmt_date(tender.date_published)}",
            f"[bold]Closes:[/bold] {_fmt_date(tender.date_closing)}",
            f"[bold]Submission:[/bold] {tender.submission_method}",
        ]
        if tender.value_amount is not None:
            lines.append(f"[bold]Value:[/bold] {tender.value_currency} {tender.value_amount:,.2f}")
        if tender.buyer_contact_email:
            lines.append(f"[bold]Email:[/bold] {tender.buyer_contact_email}")
        if tender.buyer_contact_phone:
            lines.append(f"[bold]Phone:[/bold] {tender.buyer_contact_phone}")
        if tender.description:
            lines.append("")
            lines.append(tender.description)

        console.print(Panel("\n".join(lines), title=f"[bold]{tender.title}[/bold]", border_style="cyan"))

        if tender.documents:
            docs = Table(title="Documents")
            docs.add_column("Title")
            docs.add_column("Type", style="dim")
            docs.add_column("Format", style="dim")
            docs.add_column("URL", style="blue")
            for d in tender.documents:
                docs.add_row(d.title, d.document_type or "-", d.format or "-", d.url)
            console.print(docs)
