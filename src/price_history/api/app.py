"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_history.api.deps import AppState
from price_history.api.routes import router
from price_history.core.config import PriceHistoryConfig, load_config
from price_history.core.exceptions import (
    ConfigError,
    FeedError,
    PriceHistoryError,
    QueryValidationError,
    StorageError,
)
from price_history.feed.client import CsvFeedClient
from price_history.query.service import QueryService
from price_history.storage.store import create_store
from price_history.sync.reconciler import Reconciler
from price_history.sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


def build_state(config: PriceHistoryConfig, store, feed: CsvFeedClient) -> AppState:
    """Wire reconciler, scheduler, and query service around open handles."""
    reconciler = Reconciler(
        feed=feed,
        store=store,
        asset=config.sync.asset,
        symbols=config.feed.symbols,
        history_start=config.feed.history_start,
        lookback_days=config.sync.lookback_days,
    )
    scheduler = SyncScheduler(
        reconciler,
        interval_hours=config.sync.interval_hours,
        backfill_on_start=config.sync.backfill_on_startup,
    )
    return AppState(
        config=config,
        store=store,
        feed=feed,
        reconciler=reconciler,
        scheduler=scheduler,
        queries=QueryService(store, default_asset=config.sync.asset),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = await create_store(config.storage)
    feed = CsvFeedClient(config.feed)

    state = build_state(config, store, feed)
    app.state.app_state = state
    if config.sync.enabled:
        state.scheduler.start()

    yield

    await state.scheduler.stop()
    await feed.close()
    await store.close()


def create_app(config: PriceHistoryConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import price_history

    app = FastAPI(
        title="Price History API",
        description="Daily closing prices with periodic feed synchronization",
        version=price_history.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    # Exception handlers
    @app.exception_handler(PriceHistoryError)
    async def price_history_exception_handler(request: Request, exc: PriceHistoryError):
        status_map = {
            ConfigError: 400,
            QueryValidationError: 400,
            FeedError: 502,
            StorageError: 500,
        }
        status = status_map.get(type(exc), 500)
        if status >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = str(first.get("loc", ("request",))[-1])
        if first.get("type") == "missing":
            detail = f"{field} is required"
        else:
            detail = f"{field}: {first.get('msg', 'invalid value')}"
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "detail": detail},
        )

    return app
