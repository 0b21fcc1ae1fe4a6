"""Rate-limited async HTTP client for the daily-close CSV feed."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from price_history.core.config import FeedConfig
from price_history.core.exceptions import FeedError

logger = logging.getLogger(__name__)


@runtime_checkable
class FeedClient(Protocol):
    """What the reconciler needs from a feed: one CSV payload per symbol."""

    async def fetch_series(
        self,
        symbol: str,
        start: date | None = None,
        end: datetime | None = None,
    ) -> str: ...

    async def close(self) -> None: ...


def _epoch_seconds(value: date | datetime) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp())


class CsvFeedClient:
    """Downloads daily history CSV for a symbol.

    When neither ``start`` nor ``end`` is given the period parameters are
    omitted and the feed answers with its own default window.

    Use via ``async with CsvFeedClient(config) as feed:`` or call
    :meth:`close` explicitly.
    """

    def __init__(self, config: FeedConfig) -> None:
        self._config = config
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> CsvFeedClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    def build_params(self, start: date | None, end: datetime | None) -> dict[str, str]:
        params = {
            "interval": "1d",
            "events": "history",
            "includeAdjustedClose": "true",
        }
        if start is not None or end is not None:
            period1 = start or self._config.history_start
            period2 = end or datetime.now(timezone.utc)
            params["period1"] = str(_epoch_seconds(period1))
            params["period2"] = str(_epoch_seconds(period2))
        return params

    async def fetch_series(
        self,
        symbol: str,
        start: date | None = None,
        end: datetime | None = None,
    ) -> str:
        """Fetch the raw CSV payload for one symbol.

        Raises:
            FeedError: On transport failure, non-2xx status, or an empty body.
        """
        url = f"{self._config.base_url.rstrip('/')}/{symbol}"
        params = self.build_params(start, end)

        try:
            await self._limiter.acquire()
            response = await self._client.get(url, params=params)
        except httpx.RequestError as e:
            raise FeedError(
                f"Request to feed failed for {symbol}: {e}",
                context={"symbol": symbol, "url": url},
            ) from e

        if not response.is_success:
            raise FeedError(
                f"HTTP {response.status_code} from feed for {symbol}",
                context={
                    "symbol": symbol,
                    "url": url,
                    "status_code": response.status_code,
                    "response_body": response.text[:200],
                },
            )

        body = response.text
        if not body.strip():
            raise FeedError(
                f"Feed returned an empty payload for {symbol}",
                context={"symbol": symbol, "url": url, "status_code": response.status_code},
            )

        logger.debug("Fetched %d bytes of %s history", len(body), symbol)
        return body
