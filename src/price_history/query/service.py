"""Read-side service: end-user filters to store queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError

from price_history.core.exceptions import QueryValidationError
from price_history.core.models import (
    HistoryQuery,
    PointFilter,
    PriceRecord,
    SortOrder,
)
from price_history.storage.store import PriceStore

logger = logging.getLogger(__name__)

# Never part of a response record
_HIDDEN_FIELDS = frozenset({"asset"})


def parse_history_query(params: Mapping[str, Any], default_limit: int = 100) -> HistoryQuery:
    """Validate raw request parameters into a HistoryQuery.

    Unset or empty parameters are dropped so defaults apply.

    Raises:
        QueryValidationError: If any parameter is malformed.
    """
    cleaned = {k: v for k, v in params.items() if v not in (None, "")}
    cleaned.setdefault("limit", default_limit)
    try:
        return HistoryQuery.model_validate(cleaned)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "query"
        raise QueryValidationError(
            f"Invalid {field}: {first.get('msg')}",
            context={"field": field, "value": first.get("input")},
        ) from e


class QueryService:
    """Filtered and exact-date lookups over the price store."""

    def __init__(self, store: PriceStore, default_asset: str) -> None:
        self._store = store
        self._default_asset = default_asset.lower()

    async def history(self, query: HistoryQuery) -> list[PriceRecord]:
        """Records matching ``query``, newest first, capped at ``query.limit``.

        An ``on`` date takes precedence over ``from``/``to``: the range is
        ignored rather than combined with it.
        """
        if query.on is not None:
            if query.has_range:
                logger.debug(
                    "Ignoring from=%s to=%s because on=%s was given",
                    query.from_, query.to, query.on,
                )
            flt = PointFilter(
                asset=self._asset(query),
                on=query.on,
                require=query.currency,
            )
        else:
            flt = PointFilter(
                asset=self._asset(query),
                start=query.from_,
                end=query.to,
                require=query.currency,
            )

        exclude = _HIDDEN_FIELDS
        if query.currency is not None:
            exclude = exclude | {query.currency.other.value}

        return await self._store.query(
            flt, exclude=exclude, order=SortOrder.DESC, limit=query.limit
        )

    async def lookup(self, dates: Iterable[date]) -> list[PriceRecord]:
        """Exact-date matches across every asset, in store order."""
        flt = PointFilter(dates=frozenset(dates))
        return await self._store.query(
            flt, exclude=_HIDDEN_FIELDS, order=SortOrder.NATURAL, limit=None
        )

    def _asset(self, query: HistoryQuery) -> str:
        return (query.asset or self._default_asset).lower()
