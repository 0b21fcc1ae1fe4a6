"""Click-based CLI for price-history.

Thin wrapper around library modules. Every command delegates to the
reconciler, query service, or API factory.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

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
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from price_history.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _run_pass(config, mode: str):
    """Open store and feed, run one reconciliation pass, close both."""
    from price_history.feed import CsvFeedClient
    from price_history.storage import create_store
    from price_history.sync import Reconciler

    store = await create_store(config.storage)
    try:
        async with CsvFeedClient(config.feed) as feed:
            reconciler = Reconciler(
                feed=feed,
                store=store,
                asset=config.sync.asset,
                symbols=config.feed.symbols,
                history_start=config.feed.history_start,
                lookback_days=config.sync.lookback_days,
            )
            if mode == "backfill":
                return await reconciler.backfill()
            return await reconciler.sync()
    finally:
        await store.close()


def _report_pass(result) -> None:
    if result.ok:
        console.print(
            f"[green]✓[/green] {result.mode.value} for {result.asset}: "
            f"{result.written} points written"
            + (f" ({result.rows_skipped} rows skipped)" if result.rows_skipped else "")
            + (f" ({result.unmatched_dates} unmatched dates)" if result.unmatched_dates else "")
        )
        return
    console.print(f"[red]✗ {result.mode.value} for {result.asset} failed: {result.error}[/red]")
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_HISTORY_CONFIG",
    default=None,
    help="Path to price-history.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="price-history")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price History: daily closing prices, synced from an external feed."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# backfill / sync
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def backfill(ctx: click.Context) -> None:
    """Replace the stored history with the feed's full series."""
    config = _load_config(ctx)
    _report_pass(_run_async(_run_pass(config, "backfill")))


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run one incremental sync pass."""
    config = _load_config(ctx)
    _report_pass(_run_async(_run_pass(config, "sync")))


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--from", "from_", type=str, default=None, help="Start date (YYYY-MM-DD).")
@click.option("--to", type=str, default=None, help="End date (YYYY-MM-DD).")
@click.option("--on", type=str, default=None, help="Exact date; overrides --from/--to.")
@click.option("--limit", "-n", type=str, default=None, help="Max rows or 'all'.")
@click.option("--asset", type=str, default=None, help="Asset identifier.")
@click.option(
    "--currency",
    type=click.Choice(["usd", "inr"], case_sensitive=False),
    default=None,
    help="Only show one currency.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
)
@click.pass_context
def history(
    ctx: click.Context,
    from_: str | None,
    to: str | None,
    on: str | None,
    limit: str | None,
    asset: str | None,
    currency: str | None,
    output_format: str,
) -> None:
    """Query stored prices."""
    from price_history.core import QueryValidationError
    from price_history.query import QueryService, parse_history_query
    from price_history.storage import create_store

    config = _load_config(ctx)
    try:
        query = parse_history_query(
            {
                "from": from_,
                "to": to,
                "on": on,
                "limit": limit,
                "asset": asset,
                "currency": currency.lower() if currency else None,
            },
            default_limit=config.api.default_limit,
        )
    except QueryValidationError as e:
        raise click.UsageError(str(e)) from e

    async def _run():
        store = await create_store(config.storage)
        try:
            return await QueryService(store, config.sync.asset).history(query)
        finally:
            await store.close()

    records = _run_async(_run())

    if output_format == "json":
        click.echo(json.dumps(records, default=str, indent=2))
        return

    columns = [c for c in ("usd", "inr") if not records or c in records[0]]
    table = Table(title=f"{(query.asset or config.sync.asset).upper()} price history")
    table.add_column("Date", style="bold")
    for col in columns:
        table.add_column(col.upper(), justify="right")
    for rec in records:
        table.add_row(str(rec["date"]), *(f"{rec[c]:,.2f}" for c in columns))
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server with the background sync scheduler."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting price-history API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    # The factory runs in uvicorn and reads its config path from the environment
    if ctx.obj.get("config_path"):
        os.environ["PRICE_HISTORY_CONFIG"] = str(Path(ctx.obj["config_path"]).resolve())

    uvicorn.run(
        "price_history.api.app:create_app",
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
    """Show stored data coverage."""
    from price_history.storage import create_store

    config = _load_config(ctx)

    async def _run():
        store = await create_store(config.storage)
        try:
            return await store.count(config.sync.asset), await store.date_span(config.sync.asset)
        finally:
            await store.close()

    total, span = _run_async(_run())

    table = Table(title="Price History Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Storage backend", config.storage.backend.value)
    table.add_row("Database path", config.storage.sqlite_path)
    table.add_section()
    table.add_row("Asset", config.sync.asset)
    table.add_row("Stored points", str(total))
    table.add_row("Date range", f"{span[0]} → {span[1]}" if span else "N/A")
    table.add_section()
    table.add_row("Sync interval", f"every {config.sync.interval_hours}h")

    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
