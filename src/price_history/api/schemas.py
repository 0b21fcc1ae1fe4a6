"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator


def _coerce_point_date(v: Any) -> Any:
    """Accept epoch milliseconds or an ISO date/datetime string."""
    if isinstance(v, bool):
        raise ValueError("dates must be timestamps or ISO dates")
    if isinstance(v, (int, float)):
        try:
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError("dates must be timestamps or ISO dates") from e
    if isinstance(v, str):
        text = v.strip()
        if len(text) > 10 and text[10] not in "T ":
            raise ValueError(f"not an ISO date: {v!r}")
        return date.fromisoformat(text[:10])
    return v


PointDate = Annotated[date, BeforeValidator(_coerce_point_date)]


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Price History --


class PricePointResponse(BaseModel):
    """One price record; a currency is absent when projected out."""

    date: date
    usd: float | None = None
    inr: float | None = None


class DateLookupRequest(BaseModel):
    """Request body for POST /price-history."""

    dates: list[PointDate]


# -- Health --


class SyncStatusResponse(BaseModel):
    """Summary of the most recent reconciliation pass."""

    mode: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    written: int
    error: str | None = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    version: str
    storage_backend: str
    asset: str
    total_points: int
    latest_date: date | None = None
    last_sync: SyncStatusResponse | None = None
