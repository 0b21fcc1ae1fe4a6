"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

import math
from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Type Aliases ---

Asset = str
PriceRecord = dict[str, object]

# Largest value SQLite binds as INTEGER
_MAX_LIMIT = 2**63 - 1

# --- Enumerations ---


class Currency(StrEnum):
    """Quote currencies stored for every price point."""

    USD = "usd"
    INR = "inr"

    @property
    def other(self) -> Currency:
        return Currency.INR if self is Currency.USD else Currency.USD


class SortOrder(StrEnum):
    """Result ordering for store queries."""

    DESC = "desc"
    ASC = "asc"
    NATURAL = "natural"


class SyncMode(StrEnum):
    """Reconciliation pass flavours."""

    BACKFILL = "backfill"
    INCREMENTAL = "incremental"


class StorageBackend(StrEnum):
    """Supported storage backends."""

    SQLITE = "sqlite"


# --- Price Models ---


class PricePoint(BaseModel):
    """One daily close for an asset, quoted in both currencies.

    (date, asset) is the natural key. Prices are rounded to cents on
    construction so that equal feed values always compare equal in storage.
    """

    model_config = ConfigDict(frozen=True)

    date: date
    asset: Asset
    usd: float
    inr: float

    @field_validator("asset")
    @classmethod
    def asset_normalized(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("asset must not be empty")
        return v

    @field_validator("usd", "inr")
    @classmethod
    def price_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError(f"price must be a positive finite number, got {v}")
        return round(v, 2)

    def price(self, currency: Currency) -> float:
        return self.usd if currency is Currency.USD else self.inr


class PointFilter(BaseModel):
    """Store-level filter. Unset fields do not constrain the query."""

    model_config = ConfigDict(frozen=True)

    asset: Asset | None = None
    start: date | None = None
    end: date | None = None
    on: date | None = None
    dates: frozenset[date] | None = None
    require: Currency | None = None


class HistoryQuery(BaseModel):
    """End-user filter for GET /price-history.

    ``limit`` accepts a positive integer or the literal ``"all"``; the
    latter is normalized to ``None`` (no cap).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: date | None = Field(default=None, alias="from")
    to: date | None = None
    on: date | None = None
    asset: Asset | None = None
    currency: Currency | None = None
    limit: int | None = 100

    @field_validator("limit", mode="before")
    @classmethod
    def parse_limit(cls, v: object) -> object:
        if isinstance(v, str):
            token = v.strip().lower()
            if token == "all":
                return None
            if not token.isdigit():
                raise ValueError(f"limit must be 'all' or a positive integer, got {v!r}")
            return int(token)
        return v

    @field_validator("limit")
    @classmethod
    def limit_positive(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("limit must be >= 1")
        if v is not None and v > _MAX_LIMIT:
            raise ValueError(f"limit must be <= {_MAX_LIMIT}")
        return v

    @model_validator(mode="after")
    def range_ordered(self) -> HistoryQuery:
        if self.from_ and self.to and self.from_ > self.to:
            raise ValueError(f"from ({self.from_}) must not be after to ({self.to})")
        return self

    @property
    def has_range(self) -> bool:
        return self.from_ is not None or self.to is not None
