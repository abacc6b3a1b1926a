"""Click-based CLI for navkeep.

Thin wrapper around library modules. Every command delegates to the
ingestion, health, export, or api packages.
"""

from __future__ import annotations

import asyncio
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from navkeep.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _create_store_async(config):
    """Create and initialize storage from config."""
    from navkeep.store import create_store

    return await create_store(config.storage)


def _build_adapter(source, config):
    """Instantiate the adapter for a live source."""
    from navkeep.core import Source
    from navkeep.sources import FTAdapter, FundsquareAdapter

    if source == Source.FT:
        return FTAdapter(config.sources.ft)
    if source == Source.FUNDSQUARE:
        return FundsquareAdapter(config.sources.fundsquare)
    raise click.UsageError(f"Unknown source: {source}")


def _source_delay(source, config) -> float:
    from navkeep.core import Source

    if source == Source.FT:
        return config.sources.ft.request_delay
    return config.sources.fundsquare.request_delay


def _build_orchestrator(store, config, delay: float = 0.0):
    from navkeep.ingestion import IngestionOrchestrator, RequestPacer

    return IngestionOrchestrator(
        store,
        retention_window=config.retention.window,
        pacer=RequestPacer(delay),
        strict_sources=config.health.strict_sources,
    )


def _output_results_table(title: str, results) -> None:
    table = Table(title=title)
    table.add_column("ISIN", style="bold")
    table.add_column("Status")
    table.add_column("Observed", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Latest", justify="right")
    table.add_column("Error")

    for r in results:
        latest = f"{r.latest_date} {r.latest_close:g}" if r.latest_date else "-"
        table.add_row(
            r.isin,
            "[green]ok[/green]" if r.success else "[red]failed[/red]",
            str(r.observed),
            str(r.updated),
            latest,
            r.error or "",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="NAVKEEP_CONFIG",
    default=None,
    help="Path to navkeep.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="navkeep")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """navkeep: daily fund closing-price history with source priority."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("source", type=click.Choice(["ft", "fundsquare"], case_sensitive=False))
@click.pass_context
def update(ctx: click.Context, source: str) -> None:
    """Fetch the latest prices from one source for its mapped instruments."""
    from navkeep.core import Source, TotalOutageError

    config = _load_config(ctx)
    src = Source(source.lower())
    if not config.sources.is_enabled(src):
        console.print(f"[yellow]Source '{src}' is disabled in config. Skipping.[/yellow]")
        return

    async def _run():
        store = await _create_store_async(config)
        adapter = _build_adapter(src, config)
        try:
            instruments = [i for i in config.instruments if adapter.supports(i)]
            if not instruments:
                console.print(f"[yellow]No instruments mapped for '{src}'.[/yellow]")
                return None
            orchestrator = _build_orchestrator(store, config, _source_delay(src, config))
            return await orchestrator.run(adapter, instruments)
        finally:
            await adapter.close()
            await store.close()

    try:
        outcome = _run_async(_run())
    except TotalOutageError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        for isin, error in sorted(exc.context.get("errors", {}).items()):
            console.print(f"  [red]{isin}[/red]: {error}")
        raise SystemExit(1)

    if outcome is None:
        return

    _output_results_table(f"{src} update", outcome.results)
    console.print(
        f"[green]✓[/green] {outcome.success_count}/{len(outcome.results)} "
        f"instruments updated from {src}"
    )


# ---------------------------------------------------------------------------
# health-check
# ---------------------------------------------------------------------------


@cli.command("health-check")
@click.option(
    "--fail-on-stale",
    is_flag=True,
    default=False,
    help="Exit with status 1 when data is stale.",
)
@click.pass_context
def health_check(ctx: click.Context, fail_on_stale: bool) -> None:
    """Raise or clear the staleness alert flag."""
    from navkeep.core import FreshnessState
    from navkeep.health import StalenessEvaluator

    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            evaluator = StalenessEvaluator(store, threshold_hours=config.health.stale_hours)
            return await evaluator.evaluate()
        finally:
            await store.close()

    report = _run_async(_run())

    if report.state == FreshnessState.UNKNOWN:
        console.print("[yellow]No successful update recorded yet.[/yellow]")
    elif report.state == FreshnessState.STALE:
        console.print(
            f"[red]✗ STALE[/red] last update {report.age_hours:.2f}h ago "
            f"(threshold {report.threshold_hours:g}h, source {report.last_ok.source})"
        )
    else:
        console.print(
            f"[green]✓ FRESH[/green] last update {report.age_hours:.2f}h ago "
            f"(threshold {report.threshold_hours:g}h, source {report.last_ok.source})"
        )

    if fail_on_stale and report.state == FreshnessState.STALE:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--output-dir", "-o", type=click.Path(), default=None, help="Output directory.")
@click.option("--window", "-w", type=click.IntRange(min=1), default=None, help="Dates per series.")
@click.pass_context
def export(ctx: click.Context, output_dir: str | None, window: int | None) -> None:
    """Write per-instrument and consolidated JSON price files."""
    from navkeep.export import write_exports

    config = _load_config(ctx)
    target = output_dir or config.export.output_dir

    async def _run():
        store = await _create_store_async(config)
        try:
            return await write_exports(
                store,
                config.instruments,
                target,
                window or config.export.window,
                config.export.consolidated_name,
            )
        finally:
            await store.close()

    counts = _run_async(_run())

    table = Table(title="Export")
    table.add_column("ISIN", style="bold")
    table.add_column("Points", justify="right")
    for isin, count in counts.items():
        table.add_row(isin, str(count))
    console.print(table)
    console.print(f"[green]✓[/green] Wrote {len(counts) + 1} files to {target}")


# ---------------------------------------------------------------------------
# import-csv
# ---------------------------------------------------------------------------


@cli.command("import-csv")
@click.option("--isin", required=True, help="Configured instrument to backfill.")
@click.option(
    "--file", "file_path", type=click.Path(exists=True, dir_okay=False), required=True
)
@click.option("--date-col", default=None, help="Date column name (auto-detected if omitted).")
@click.option("--close-col", default=None, help="Close column name (auto-detected if omitted).")
@click.option("--date-format", default="%d/%m/%Y", help="strptime format for non-ISO dates.")
@click.pass_context
def import_csv(
    ctx: click.Context,
    isin: str,
    file_path: str,
    date_col: str | None,
    close_col: str | None,
    date_format: str,
) -> None:
    """Backfill one instrument from a CSV file at the lowest source priority."""
    from navkeep.sources import CsvPriceAdapter

    config = _load_config(ctx)
    instrument = config.get_instrument(isin)
    if instrument is None:
        raise click.UsageError(f"Instrument '{isin}' is not configured")

    adapter = CsvPriceAdapter(
        file_path, date_col=date_col, close_col=close_col, date_format=date_format
    )

    async def _run():
        store = await _create_store_async(config)
        try:
            orchestrator = _build_orchestrator(store, config)
            return await orchestrator.ingest_instrument(adapter, instrument)
        finally:
            await store.close()

    result = _run_async(_run())
    _output_results_table("CSV import", [result])
    if not result.success:
        raise SystemExit(1)
    console.print(
        f"[green]✓[/green] Imported {result.observed} rows for {instrument.isin} "
        f"({result.updated} written, {result.inserted} new dates)"
    )


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address.")
@click.option("--port", "-p", type=int, default=None, help="Port number.")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the read-only REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory reloads config itself
    if ctx.obj.get("config_path"):
        os.environ["NAVKEEP_CONFIG"] = ctx.obj["config_path"]

    console.print(f"Starting navkeep API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "navkeep.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show stored history per instrument and ingestion freshness."""
    from navkeep.core.time_utils import utc_now
    from navkeep.health import classify

    async def _run():
        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            table = Table(title="navkeep Status")
            table.add_column("ISIN", style="bold")
            table.add_column("Name")
            table.add_column("Dates", justify="right")
            table.add_column("Range")
            table.add_column("Latest close", justify="right")

            for instrument in config.instruments:
                dates = await store.get_index(instrument.isin)
                latest = await store.get_record(instrument.isin, dates[-1]) if dates else None
                table.add_row(
                    instrument.isin,
                    instrument.name or "",
                    str(len(dates)),
                    f"{dates[0]} → {dates[-1]}" if dates else "N/A",
                    f"{latest.close:g} ({latest.source})" if latest else "N/A",
                )
            console.print(table)

            health = await store.load_health()
            state, age = classify(health, config.health.stale_hours, utc_now())
            if health.last_ok is None:
                console.print("Last successful update: [yellow]never[/yellow]")
            else:
                console.print(
                    f"Last successful update: {health.last_ok.timestamp.isoformat()} "
                    f"from {health.last_ok.source} ({age:.2f}h ago)"
                )
            console.print(f"Freshness: [bold]{state}[/bold]")
            for source, run in sorted(health.sources.items()):
                console.print(
                    f"  {source}: {run.success_count}/{run.total_attempted} "
                    f"at {run.timestamp.isoformat()}"
                )
        finally:
            await store.close()

    _run_async(_run())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
