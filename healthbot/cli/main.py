"""Main CLI application for HealthBot."""

import asyncio
from typing import Optional

import typer
from aiohttp import web
from rich.console import Console
from rich.table import Table

from ..config import get_settings
from ..db.ledger import RunLedger
from ..exceptions import HealthCheckError, LedgerError
from ..logging import get_logger
from ..models.tickets import Ticket
from ..orchestrator import HealthCheckOrchestrator, HealthCheckReport, RemediationSweep, SweepReport

app = typer.Typer(
    name="healthbot",
    help="Platform self-monitoring and ticket auto-remediation",
    add_completion=False
)

console = Console()
logger = get_logger(__name__)

SEVERITY_COLORS = {
    'critical': 'red',
    'high': 'yellow',
    'medium': 'blue',
    'low': 'green',
}


@app.command()
def check(
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-u", help="Base address of the platform to probe"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
) -> None:
    """Run one health check and record it."""
    settings = get_settings()

    if base_url:
        settings.base_url = base_url
    if verbose:
        settings.log_level = "DEBUG"

    console.print("[bold blue]HealthBot[/bold blue] - Health Check")
    console.print(f"Target: {settings.base_url}")
    console.print()

    asyncio.run(_run_check())


@app.command()
def sweep(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Maximum tickets to process"
    ),
) -> None:
    """Run one remediation sweep over open tickets."""
    settings = get_settings()

    if limit is not None:
        settings.sweep_limit = limit

    console.print("[bold blue]HealthBot[/bold blue] - Remediation Sweep")
    console.print()

    asyncio.run(_run_sweep())


@app.command()
def status(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of runs to show"),
) -> None:
    """Show status of recent runs."""
    console.print("[bold blue]HealthBot[/bold blue] - Status")
    console.print()

    asyncio.run(_show_status(limit))


@app.command()
def ticket(
    title: str = typer.Option(..., "--title", "-t", help="Ticket title"),
    description: str = typer.Option("", "--description", "-d", help="Ticket description"),
    category: str = typer.Option("", "--category", "-c", help="Ticket category"),
    number: Optional[str] = typer.Option(None, "--number", "-n", help="Ticket number"),
) -> None:
    """File a support ticket for the next sweep."""
    asyncio.run(_file_ticket(Ticket.new(title, description, category, ticket_number=number)))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
) -> None:
    """Serve the trigger endpoints."""
    from ..api import create_app

    settings = get_settings()
    console.print(f"[bold blue]HealthBot[/bold blue] - listening on {host or settings.host}:{port or settings.port}")
    web.run_app(create_app(settings), host=host or settings.host, port=port or settings.port)


async def _run_check() -> None:
    """Run the orchestrator and display its report."""
    try:
        async with await RunLedger.open() as ledger:
            report = await HealthCheckOrchestrator(ledger).run()
    except (HealthCheckError, LedgerError) as e:
        console.print(f"[red]Health check failed: {e}[/red]")
        logger.error("Health check failed", error=str(e))
        raise typer.Exit(1)

    _display_report(report)
    if not report.run.is_healthy:
        raise typer.Exit(2)


async def _run_sweep() -> None:
    try:
        async with await RunLedger.open() as ledger:
            report = await RemediationSweep(ledger).run()
    except LedgerError as e:
        console.print(f"[red]Sweep failed: {e}[/red]")
        logger.error("Sweep failed", error=str(e))
        raise typer.Exit(1)

    _display_sweep(report)


async def _show_status(limit: int) -> None:
    """Show status of recent runs."""
    try:
        async with await RunLedger.open() as ledger:
            runs = await ledger.recent_runs(limit)
    except LedgerError as e:
        console.print(f"[red]Failed to show status: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Recent HealthBot Runs")
    table.add_column("Run ID", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Started", style="blue")
    table.add_column("Duration", style="yellow")
    table.add_column("Issues", style="magenta")

    for run in runs:
        table.add_row(
            run.id,
            run.public_status,
            run.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{run.duration_ms}ms" if run.duration_ms is not None else "N/A",
            str(run.issues_found),
        )

    console.print(table)


async def _file_ticket(new_ticket: Ticket) -> None:
    try:
        async with await RunLedger.open() as ledger:
            await ledger.create_ticket(new_ticket)
    except LedgerError as e:
        console.print(f"[red]Failed to file ticket: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Filed ticket {new_ticket.label}[/green]")


def _display_report(report: HealthCheckReport) -> None:
    """Display a health-check report."""
    run = report.run
    color = "green" if run.is_healthy else "red"
    console.print(f"[bold {color}]{run.public_status}[/bold {color}] ({run.duration_ms}ms, run {run.id})")
    console.print()

    table = Table(title="Summary")
    table.add_column("Category", style="cyan")
    table.add_column("Checked", style="white")
    table.add_column("Passed", style="green")
    table.add_column("Failed", style="red")

    for category, counts in run.counts.items():
        table.add_row(category, str(counts.checked), str(counts.passed), str(counts.failed))

    console.print(table)

    if report.issues:
        issues_table = Table(title="Issues")
        issues_table.add_column("Severity", style="red")
        issues_table.add_column("Category", style="cyan")
        issues_table.add_column("Title", style="white")
        issues_table.add_column("Target", style="blue")

        for issue in report.issues:
            severity_color = SEVERITY_COLORS.get(issue.severity, 'white')
            issues_table.add_row(
                f"[{severity_color}]{issue.severity}[/{severity_color}]",
                issue.category,
                issue.title,
                issue.target,
            )

        console.print(issues_table)


def _display_sweep(report: SweepReport) -> None:
    console.print(f"[bold green]{report.message}[/bold green]")

    if report.details:
        table = Table(title="Tickets")
        table.add_column("Ticket", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Pattern", style="magenta")
        table.add_column("Notes", style="white")

        for detail in report.details:
            table.add_row(
                detail.get('ticket_number') or detail['ticket_id'],
                detail['status'],
                detail.get('pattern') or '',
                detail.get('resolution') or detail.get('reason') or detail.get('error') or '',
            )

        console.print(table)

    for error in report.errors:
        console.print(f"[red]{error}[/red]")


if __name__ == "__main__":
    app()
