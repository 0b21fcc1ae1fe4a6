"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from price_history.core.config import PriceHistoryConfig
from price_history.feed.client import CsvFeedClient
from price_history.query.service import QueryService
from price_history.storage.store import SqlitePriceStore
from price_history.sync.reconciler import Reconciler
from price_history.sync.scheduler import SyncScheduler


@dataclass
class AppState:
    """Process-wide handles, built and torn down by the app lifespan."""

    config: PriceHistoryConfig
    store: SqlitePriceStore
    feed: CsvFeedClient
    reconciler: Reconciler
    scheduler: SyncScheduler
    queries: QueryService


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> PriceHistoryConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> SqlitePriceStore:
    """Dependency: retrieve storage backend."""
    return request.app.state.app_state.store


def get_query_service(request: Request) -> QueryService:
    return request.app.state.app_state.queries
