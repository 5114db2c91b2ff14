"""CLI entry point for TrendLedger."""

import time

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from trendledger.config import get_settings
from trendledger.errors import LedgerError
from trendledger.logger import get_logger
from trendledger.models.metadata import MarketMetadata, TrendState
from trendledger.services.metadata_store import MetadataStore
from trendledger.services.metadata_updater import MetadataUpdater
from trendledger.services.points_ledger import PointsLedger
from trendledger.services.scheduler import MetadataScheduler

console = Console()
logger = get_logger(__name__)

STATE_STYLES = {
    TrendState.HOT: "red",
    TrendState.DETECTED: "yellow",
    TrendState.COOLING: "cyan",
    TrendState.RESOLVED: "dim",
}


@click.group()
@click.version_option(version="1.0.0", prog_name="trendledger")
def cli():
    """TrendLedger: trend metadata and points ledger.

    Scores markets by trendiness and keeps the points ledger for claims
    and withdrawals.
    """
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from settings)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: from settings)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(
        Panel(
            f"Serving on [bold]http://{host}:{port}[/bold]\n"
            f"Docs at [bold]http://{host}:{port}/docs[/bold]\n"
            f"Scheduler: {'enabled' if settings.enable_scheduler else 'disabled'}",
            title="TrendLedger API",
            border_style="blue",
        )
    )
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("trendledger.api.main:app", host=host, port=port, reload=reload)


@cli.command()
def update_metadata():
    """Run the metadata update job once.

    Fetches trending topics, matches them to the markets in the deployments
    file and sweeps records older than the retention window.
    """
    logger.info("Update metadata command started")
    settings = get_settings()
    updater = MetadataUpdater.from_settings(settings)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Updating market metadata...", total=None)
            summary = updater.run_job()
            progress.update(task, completed=True)

        console.print(
            f"\n[green]✓[/green] Updated {summary.updated_count} markets "
            f"([red]{summary.hot_count} hot[/red])"
        )
        console.print(f"[dim]Database location: {settings.db_path}")

    except Exception as e:
        logger.error(f"Error updating metadata: {e}", exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    finally:
        updater.close()


@cli.command()
@click.option(
    "--interval",
    "-i",
    type=int,
    default=None,
    help="Minutes between updates (default: from settings, 10)",
)
def schedule(interval: int | None):
    """Run the metadata update job on a schedule until interrupted."""
    settings = get_settings()
    interval = interval or settings.update_interval_minutes
    updater = MetadataUpdater.from_settings(settings)
    scheduler = MetadataScheduler(updater.run_job, interval_minutes=interval)

    console.print(
        Panel(
            f"Schedule: every {interval} minutes\n"
            f"Deployments file: {settings.deployments_file}\n"
            "Running an initial update now. Press Ctrl+C to stop.",
            title="Market Metadata Scheduler",
            border_style="blue",
        )
    )

    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping scheduler...[/yellow]")
    finally:
        scheduler.stop()
        updater.close()
        console.print("[green]✓[/green] Scheduler stopped")


@cli.command()
@click.argument("market_id", required=False)
@click.option("--raw", is_flag=True, help="Show stored values without time decay")
def metadata(market_id: str | None, raw: bool):
    """Show market metadata, decayed to now unless --raw is given."""
    store = MetadataStore.from_settings(get_settings())

    try:
        if market_id:
            record = store.get(market_id, decay=not raw)
            if record is None:
                console.print(f"[yellow]No metadata for {market_id}.[/yellow]")
                raise SystemExit(1)
            records = [record]
        else:
            records = list(store.get_all(decay=not raw).values())
    except LedgerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if not records:
        console.print("[yellow]No market metadata found.[/yellow]")
        console.print("Run [bold]trendledger update-metadata[/bold] first.")
        return

    _display_metadata(records)


def _display_metadata(records: list[MarketMetadata]):
    """Display metadata records as a table."""
    table = Table(title="Market Metadata", show_header=True)
    table.add_column("Market", style="bold", max_width=20)
    table.add_column("Topic", max_width=30)
    table.add_column("Score", justify="right")
    table.add_column("State", justify="center")
    table.add_column("Articles", justify="right")
    table.add_column("Recency", justify="right")
    table.add_column("Stake", justify="right")
    table.add_column("Activity")

    for record in records:
        style = STATE_STYLES[record.trend_state]
        table.add_row(
            record.market_id[:18] + "..." if len(record.market_id) > 18 else record.market_id,
            record.trending_topic or "[dim]-[/dim]",
            f"{record.trend_score:g}{' 🔥' if record.is_hot else ''}",
            f"[{style}]{record.trend_state.value}[/{style}]",
            str(record.article_count),
            f"{record.recency_score:g}",
            record.suggested_stake,
            record.activity_status.value,
        )

    console.print(table)


@cli.command()
@click.argument("user_id")
def balance(user_id: str):
    """Show a user's point balance and claim history."""
    ledger = PointsLedger.from_settings(get_settings())

    try:
        points = ledger.get_balance(user_id)
        transactions = ledger.get_transactions(user_id)
    except LedgerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(
        Panel(
            f"[bold]User:[/bold] {user_id}\n[bold]Balance:[/bold] {points:,} points",
            title="Points Balance",
            border_style="green",
        )
    )

    if transactions:
        table = Table(title="Claims", show_header=True)
        table.add_column("Transaction", style="dim")
        table.add_column("Market", style="bold")
        table.add_column("Points", justify="right")
        table.add_column("Time")
        for tx in transactions:
            table.add_row(
                tx.id,
                tx.market_id,
                f"{tx.points_earned:,}",
                tx.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            )
        console.print(table)


@cli.command()
def cleanup():
    """Remove metadata records older than the retention window."""
    settings = get_settings()
    store = MetadataStore.from_settings(settings)

    try:
        removed = store.cleanup_old()
    except LedgerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(
        f"[green]✓[/green] Removed {removed} records older than {settings.retention_days} days"
    )


if __name__ == "__main__":
    cli()
