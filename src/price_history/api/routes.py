"""FastAPI route definitions for the price-history API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

import price_history
from price_history.api.deps import AppState, get_app_state, get_query_service
from price_history.api.schemas import (
    DateLookupRequest,
    HealthResponse,
    PricePointResponse,
    SyncStatusResponse,
)
from price_history.query.service import QueryService, parse_history_query

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(state: AppState = Depends(get_app_state)):
    """System health and basic statistics."""
    asset = state.config.sync.asset
    total = await state.store.count(asset)
    span = await state.store.date_span(asset)

    last = state.scheduler.last_result
    last_sync = None
    if last is not None:
        last_sync = SyncStatusResponse(
            mode=last.mode.value,
            status=last.status,
            started_at=last.started_at,
            completed_at=last.completed_at,
            written=last.written,
            error=last.error,
        )

    return HealthResponse(
        status="ok" if await state.store.health_check() else "degraded",
        version=price_history.__version__,
        storage_backend=state.config.storage.backend.value,
        asset=asset,
        total_points=total,
        latest_date=span[1] if span else None,
        last_sync=last_sync,
    )


# -- Price History --


@router.get(
    "/price-history",
    response_model=list[PricePointResponse],
    response_model_exclude_none=True,
)
async def get_price_history(
    from_: str | None = Query(None, alias="from", description="YYYY-MM-DD, inclusive"),
    to: str | None = Query(None, description="YYYY-MM-DD, inclusive"),
    on: str | None = Query(None, description="YYYY-MM-DD; overrides from/to"),
    limit: str | None = Query(None, description="'all' or a positive integer"),
    asset: str | None = Query(None),
    currency: str | None = Query(None, description="usd | inr"),
    state: AppState = Depends(get_app_state),
    queries: QueryService = Depends(get_query_service),
):
    """Filtered price history, newest first."""
    query = parse_history_query(
        {
            "from": from_,
            "to": to,
            "on": on,
            "limit": limit,
            "asset": asset,
            "currency": currency.lower() if currency else None,
        },
        default_limit=state.config.api.default_limit,
    )
    return await queries.history(query)


@router.post(
    "/price-history",
    response_model=list[PricePointResponse],
    response_model_exclude_none=True,
)
async def lookup_price_history(
    request: DateLookupRequest,
    queries: QueryService = Depends(get_query_service),
):
    """Exact-date lookup across all assets."""
    return await queries.lookup(request.dates)
