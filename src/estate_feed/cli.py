"""CLI interface for estate-feed."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from estate_feed import __version__
from estate_feed.config import ConfigError, load_settings, load_telegram_credentials
from estate_feed.database.engine import get_session, init_db
from estate_feed.models.pydantic_models import ListingRead, PropertyType, SyncMode
from estate_feed.services.extraction_service import ExtractionService
from estate_feed.services.job_service import JobService
from estate_feed.services.listing_service import ListingNotFoundError, ListingService
from estate_feed.services.sync_runner import execute_sync
from estate_feed.services.sync_service import SyncError
from estate_feed.storage import create_storage

app = typer.Typer(
    name="estate-feed",
    help="Telegram real-estate channel sync and listing extraction",
    add_completion=False,
)
console = Console()


def output_json(data: Any) -> None:
    """Output JSON to stdout."""
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def configure_logging(verbose: bool) -> None:
    """Route log records through rich at INFO, or DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    if not verbose:
        logging.getLogger("telethon").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"estate-feed version {__version__}")
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
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable debug logging.",
    ),
) -> None:
    """Telegram real-estate channel sync."""
    configure_logging(verbose)


@app.command()
def init_database(
    db_path: Path | None = typer.Option(
        None,
        "--db",
        "-d",
        help="Path to SQLite database file.",
    ),
) -> None:
    """Initialize the database, creating all tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")

    try:
        init_db(db_path)
        db_location = db_path or "data/estate_feed.db"
        console.print(f"[green]Database initialized at: {db_location}[/green]")
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def auth() -> None:
    """Log in to Telegram and print a session string.

    Reads TELEGRAM_API_ID and TELEGRAM_API_HASH from the environment and
    prompts for phone number and login code.
    """
    from estate_feed.channel.telegram import create_session_string

    try:
        credentials = load_telegram_credentials(require_session=False)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    session_string = asyncio.run(create_session_string(credentials.api_id, credentials.api_hash))
    console.print("[green]Login successful. Set this as TELEGRAM_SESSION_STRING:[/green]")
    print(session_string)


@app.command()
def sync(
    mode: SyncMode = typer.Argument(
        SyncMode.INCREMENTAL,
        help="Sync mode (backfill, incremental, check_deleted).",
    ),
    no_extract: bool = typer.Option(
        False,
        "--no-extract",
        help="Skip field extraction after an incremental sync.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings YAML file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Synchronize the configured channel into the catalog."""
    init_db()

    try:
        settings = load_settings(config)
        with get_session() as session:
            job_service = JobService(session)
            job = job_service.start_job(mode)
            try:
                result, extraction = asyncio.run(
                    execute_sync(session, mode, settings, extract=not no_extract)
                )
            except Exception as e:
                session.rollback()
                job_service.fail_job(job.id, error_message=str(e))
                raise
            job_service.complete_job(job.id, result)
    except Exception as e:
        if json_output:
            output_json({"status": "error", "mode": mode.value, "error": str(e)})
        elif isinstance(e, (ConfigError, SyncError)):
            console.print(f"[red]{e}[/red]")
        else:
            console.print(f"[red]Error during sync: {e}[/red]")
        raise typer.Exit(1) from e

    if json_output:
        output_json({
            "status": "success",
            "result": result.model_dump(mode="json"),
            "extraction": extraction.model_dump(mode="json") if extraction else None,
        })
        return

    console.print()
    console.print(f"[green]Sync complete ({mode.value})[/green]")
    if mode == SyncMode.CHECK_DELETED:
        console.print(f"  Checked: {result.checked_listings}")
        console.print(f"  Missing: {result.missing_candidates}")
        console.print(f"  Deleted: {result.deleted_listings}")
    else:
        console.print(f"  Messages processed: {result.processed_messages}")
        console.print(f"  Listings touched: {result.listings_touched}")
        console.print(f"  Skipped (excluded): {result.skipped_excluded}")
        console.print(f"  Failed: {result.failed_messages}")
        console.print(f"  Last message id: {result.last_message_id or '-'}")
    if extraction is not None:
        console.print(f"  Extraction updated: {extraction.updated}/{extraction.processed}")


@app.command()
def extract(
    listing_id: list[int] | None = typer.Option(
        None,
        "--listing-id",
        "-i",
        help="Only extract these listings (can specify multiple).",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings YAML file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Extract typed fields from listing descriptions."""
    init_db()
    settings = load_settings(config)

    with get_session() as session:
        service = ExtractionService(session, settings.extraction)
        result = service.run_extraction(listing_ids=listing_id or None)

    if json_output:
        output_json(result.model_dump(mode="json"))
        return

    console.print("[green]Extraction complete![/green]")
    console.print(f"  Descriptions filled: {result.descriptions_filled}")
    console.print(f"  Processed: {result.processed}")
    console.print(f"  Updated: {result.updated}")
    console.print(f"  Skipped (empty): {result.skipped_empty}")


@app.command(name="list")
def list_listings(
    property_type: PropertyType | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Filter by property type.",
    ),
    search: str | None = typer.Option(
        None,
        "--search",
        "-s",
        help="Search in title and description.",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-l",
        help="Maximum number of listings to show.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """List catalog listings, newest first."""
    init_db()

    with get_session() as session:
        service = ListingService(session)
        listings, total = service.get_listings(
            property_type=property_type, search=search, limit=limit
        )

    if json_output:
        output_json({
            "listings": [listing.model_dump(mode="json") for listing in listings],
            "count": len(listings),
            "total": total,
        })
        return

    if not listings:
        console.print("[yellow]No listings found.[/yellow]")
        return

    table = Table(title=f"Listings ({len(listings)} shown)")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title", style="white", max_width=40)
    table.add_column("Type", style="magenta")
    table.add_column("Price", style="green", justify="right")
    table.add_column("Area", style="blue", justify="right")
    table.add_column("Rooms", style="yellow")
    table.add_column("Posted", style="dim")

    for listing in listings:
        table.add_row(
            str(listing.id),
            listing.title[:40] if listing.title else "-",
            listing.property_type,
            _format_price(listing),
            f"{listing.area_m2:g} m²" if listing.area_m2 else "-",
            listing.rooms_text or "-",
            listing.posted_at.strftime("%Y-%m-%d") if listing.posted_at else "-",
        )

    console.print(table)

    if total > limit:
        console.print(f"[dim]Showing {limit} of {total} total listings[/dim]")


def _format_price(listing: ListingRead) -> str:
    if listing.price_value is None:
        return "-"
    return f"{listing.price_value:,.0f} {listing.price_currency or ''}".strip()


@app.command()
def show(
    listing_id: int = typer.Argument(..., help="Listing ID to show."),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """Show detailed information for a specific listing."""
    init_db()

    with get_session() as session:
        listing = ListingService(session).get_listing(listing_id)

    if listing is None:
        if json_output:
            output_json({"error": f"Listing #{listing_id} not found"})
        else:
            console.print(f"[red]Listing #{listing_id} not found.[/red]")
        raise typer.Exit(1)

    if json_output:
        output_json(listing.model_dump(mode="json"))
        return

    floor = "-"
    if listing.floor is not None:
        floor = f"{listing.floor}/{listing.total_floors}" if listing.total_floors else str(listing.floor)

    details = [
        f"[bold]Title:[/bold] {listing.title or '-'}",
        f"[bold]Link:[/bold] {listing.permalink or '-'}",
        f"[bold]Type:[/bold] {listing.property_type}",
        "",
        f"[bold]Price:[/bold] {_format_price(listing)}",
        f"[bold]Area:[/bold] {listing.area_m2:g} m²" if listing.area_m2 else "[bold]Area:[/bold] -",
        f"[bold]Rooms:[/bold] {listing.rooms_text or '-'}",
        f"[bold]Floor:[/bold] {floor}",
        f"[bold]Condition:[/bold] {listing.condition_norm or '-'}",
        f"[bold]Address:[/bold] {listing.address_text or '-'}",
        f"[bold]Building:[/bold] {listing.building_name or '-'}",
        "",
        f"[bold]Posted:[/bold] {listing.posted_at.strftime('%Y-%m-%d %H:%M') if listing.posted_at else '-'}",
        f"[bold]Photos:[/bold] {len(listing.image_urls)}",
    ]

    if listing.description_raw:
        details.append("")
        details.append(listing.description_raw)

    panel = Panel(
        "\n".join(details),
        title=f"[bold blue]Listing #{listing.id}[/bold blue]",
        expand=False,
    )
    console.print(panel)


@app.command()
def delete(
    listing_id: int = typer.Argument(..., help="Listing ID to delete."),
    reason: str | None = typer.Option(
        None,
        "--reason",
        "-r",
        help="Why the listing is removed.",
    ),
    deleted_by: str | None = typer.Option(
        None,
        "--by",
        help="Operator identifier.",
    ),
) -> None:
    """Delete a listing and block its post from being ingested again."""
    init_db()
    settings = load_settings()

    with get_session() as session:
        service = ListingService(
            session, storage=create_storage(settings), bucket=settings.storage.bucket
        )
        try:
            service.delete_listing(listing_id, reason=reason, deleted_by=deleted_by)
        except ListingNotFoundError as e:
            console.print(f"[red]Listing #{listing_id} not found.[/red]")
            raise typer.Exit(1) from e

    console.print(f"[green]Listing #{listing_id} deleted.[/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port."),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Run the HTTP API server.

    Settings, Telegram credentials and the storage backend are checked
    before the server starts; any problem exits with status 1.
    """
    import uvicorn

    from estate_feed.api.main import check_configuration

    if config is not None:
        os.environ["ESTATE_FEED_CONFIG"] = str(config)

    try:
        settings = check_configuration()
    except (ConfigError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1) from e

    init_db()
    with get_session() as session:
        job_service = JobService(session)
        stale = job_service.fail_stale_jobs()
        removed = job_service.cleanup_old_jobs(days=settings.sync.job_retention_days)
    if stale:
        console.print(f"[yellow]Marked {stale} interrupted sync job(s) as failed[/yellow]")
    if removed:
        console.print(
            f"[dim]Removed {removed} sync job(s) older than "
            f"{settings.sync.job_retention_days} days[/dim]"
        )

    uvicorn.run("estate_feed.api.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
