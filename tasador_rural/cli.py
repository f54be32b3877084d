"""Command-line interface for the rural comparables estimator."""

import asyncio
import json

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from tasador_rural.config import settings
from tasador_rural.errors import CacheError, InvalidQueryError, SearchUnavailableError
from tasador_rural.models import EstimationResult
from tasador_rural.pipeline import build_service
from tasador_rural.query import DEFAULT_RADIUS_KM, build_query
from tasador_rural.storage import SqlCacheStore
from tasador_rural.utils import configure_logging

app = typer.Typer(
    name="tasador",
    help="Rural property valuation from MercadoLibre comparables",
    add_completion=False,
)
console = Console()


def _money(value: float) -> str:
    return f"${value:,.0f}"


def print_result(result: EstimationResult, hectareas: float) -> None:
    """Render an estimation as a summary plus a table of comparables."""
    source = "cache" if result.from_cache else "MercadoLibre"
    console.print(f"[bold]Comparables found:[/bold] {result.total_found} (from {source})")

    if result.total_found == 0:
        console.print("[yellow]No comparables with price and area were found[/yellow]")
        return

    console.print(f"  Price per ha (mean): {_money(result.estimated_price_per_hectare)}")
    console.print(f"  Estimated total ({hectareas:g} ha): {_money(result.estimated_price_total)}")
    console.print(f"  Median-based total: {_money(result.median_price)}")
    console.print(f"  Range: {_money(result.min_price)} - {_money(result.max_price)}")
    console.print(f"  Confidence: {result.confidence_score:.2f}")
    console.print()

    table = Table(title="Comparables")
    table.add_column("Score", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Location")
    table.add_column("Ha", justify="right")
    table.add_column("Price", justify="right", style="green")
    table.add_column("$/ha", justify="right")

    for c in result.comparables:
        table.add_row(
            f"{c.similarity_score:.2f}",
            c.title,
            c.location,
            f"{c.area_hectares:g}",
            _money(c.price),
            _money(c.price_per_hectare),
        )

    console.print(table)


@app.command()
def comparables(
    provincia: str = typer.Argument(..., help="Province, e.g. Córdoba"),
    localidad: str = typer.Argument(..., help="Locality, e.g. Río Cuarto"),
    hectareas: float = typer.Argument(..., help="Size of the property in hectares"),
    tipo_campo: str = typer.Argument(..., help="Field type: agrícola, ganadero, mixto, ..."),
    radio: float = typer.Option(DEFAULT_RADIUS_KM, "--radio", "-r", help="Search radius in km"),
    page: int = typer.Option(1, "--page", "-p", help="Results page"),
    use_cache: bool = typer.Option(True, "--cache/--no-cache", help="Read and write the results cache"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON result"),
):
    """Estimate a property's value from comparable listings."""
    configure_logging()

    try:
        query = build_query({
            "provincia": provincia,
            "localidad": localidad,
            "hectareas": hectareas,
            "tipo_campo": tipo_campo,
            "radioKm": radio,
            "page": page,
        })
    except InvalidQueryError as e:
        console.print(f"[red]Invalid query: {e}[/red]")
        raise typer.Exit(2)

    async def run():
        service = build_service()
        try:
            return await service.estimate(query, use_cache=use_cache)
        finally:
            await service.close()

    try:
        if as_json:
            result = asyncio.run(run())
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Searching MercadoLibre...", total=None)
                result = asyncio.run(run())
    except SearchUnavailableError as e:
        console.print(f"[red]✗ Search failed: {e} ({e.last_error})[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
    else:
        print_result(result, query.hectareas)


@app.command()
def cache_stats():
    """Show results cache statistics."""
    store = SqlCacheStore()
    try:
        store.init()
        active, expired = store.stats()
    except CacheError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Comparables cache")
    table.add_column("Entries", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Active", str(active))
    table.add_row("Expired", str(expired))
    table.add_row("─" * 10, "─" * 8)
    table.add_row("[bold]Total[/bold]", f"[bold]{active + expired}[/bold]")

    console.print(table)


@app.command()
def cache_purge():
    """Delete expired cache entries."""
    store = SqlCacheStore()
    try:
        store.init()
        removed = store.purge_expired()
    except CacheError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Removed {removed} expired entries[/green]")


@app.command()
def init():
    """Initialize the cache database."""
    try:
        SqlCacheStore().init()
    except CacheError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Database initialized ({settings.database_url})[/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
):
    """Run the HTTP API."""
    import uvicorn

    from tasador_rural.api import create_app

    configure_logging()
    uvicorn.run(create_app(), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
