"""Reconciles the external feed with the local price store.

Two pass types exist:

- **backfill**: fetch the full history, purge every stored point for the
  asset, insert the decoded series. The feed is authoritative, so a re-run
  after schema or source drift leaves no stale rows behind.
- **incremental sync**: fetch the recent window and upsert each point by
  its (date, asset) key. Repeating a pass with the same feed output leaves
  the store unchanged.

A pass never raises. Any failure is logged and reported in the returned
``SyncResult``; the next scheduled pass is the recovery path.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from price_history.core.exceptions import FeedError
from price_history.core.models import Currency, PricePoint, SyncMode
from price_history.feed.client import FeedClient
from price_history.feed.decoder import DecodeStats, decode_series
from price_history.storage.store import PriceStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a single reconciliation pass."""

    mode: SyncMode
    asset: str
    started_at: datetime
    status: str = "running"  # "running" | "completed" | "failed"
    completed_at: datetime | None = None
    rows_decoded: int = 0
    rows_skipped: int = 0
    unmatched_dates: int = 0
    written: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "completed"


class Reconciler:
    """Drives backfill and incremental sync passes for one asset.

    Parameters
    ----------
    feed : FeedClient
        Source of raw CSV payloads.
    store : PriceStore
        Destination for decoded points.
    asset : str
        Asset identifier written on every point.
    symbols : dict[Currency, str]
        Feed symbol per quote currency.
    history_start : date
        Lower bound of the backfill range.
    lookback_days : int | None
        Explicit window for incremental passes. ``None`` leaves the range
        to the feed's default.
    """

    def __init__(
        self,
        feed: FeedClient,
        store: PriceStore,
        asset: str,
        symbols: dict[Currency, str],
        history_start: date,
        lookback_days: int | None = None,
    ) -> None:
        self._feed = feed
        self._store = store
        self._asset = asset
        self._symbols = symbols
        self._history_start = history_start
        self._lookback_days = lookback_days

    @property
    def asset(self) -> str:
        return self._asset

    async def backfill(self, now: datetime | None = None) -> SyncResult:
        """Replace the asset's stored history with the full feed series."""
        now = now or datetime.now(timezone.utc)
        result = SyncResult(mode=SyncMode.BACKFILL, asset=self._asset, started_at=now)
        logger.info("Backfill for %s starting (%s to %s)", self._asset, self._history_start, now.date())

        try:
            points, stats = await self._fetch_points(self._history_start, now)
            self._record_stats(result, points, stats)
            if not points:
                raise FeedError(
                    f"Full-history feed for {self._asset} decoded to zero points",
                    context={"symbol": self._symbols[Currency.USD]},
                )

            removed = await self._store.delete_all_for_asset(self._asset)
            result.written = await self._store.insert_many(points)
            logger.info(
                "Backfill for %s replaced %d stored points with %d",
                self._asset, removed, result.written,
            )
        except Exception as e:
            return self._fail(result, e)

        return self._complete(result)

    async def sync(self, now: datetime | None = None) -> SyncResult:
        """Upsert the feed's recent window, one point at a time."""
        now = now or datetime.now(timezone.utc)
        result = SyncResult(mode=SyncMode.INCREMENTAL, asset=self._asset, started_at=now)

        start: date | None = None
        end: datetime | None = None
        if self._lookback_days is not None:
            start = (now - timedelta(days=self._lookback_days)).date()
            end = now

        try:
            points, stats = await self._fetch_points(start, end)
            self._record_stats(result, points, stats)

            for point in points:
                await self._store.upsert(point)
                result.written += 1
        except Exception as e:
            return self._fail(result, e)

        logger.info("Incremental sync for %s upserted %d points", self._asset, result.written)
        return self._complete(result)

    async def _fetch_points(
        self, start: date | None, end: datetime | None
    ) -> tuple[list[PricePoint], DecodeStats]:
        usd_payload, inr_payload = await asyncio.gather(
            self._feed.fetch_series(self._symbols[Currency.USD], start, end),
            self._feed.fetch_series(self._symbols[Currency.INR], start, end),
        )
        stats = DecodeStats()
        points = list(decode_series(usd_payload, inr_payload, self._asset, stats))
        return points, stats

    @staticmethod
    def _record_stats(result: SyncResult, points: list[PricePoint], stats: DecodeStats) -> None:
        result.rows_decoded = len(points)
        result.rows_skipped = stats.rows_skipped
        result.unmatched_dates = stats.unmatched_dates

    @staticmethod
    def _complete(result: SyncResult) -> SyncResult:
        result.status = "completed"
        result.completed_at = datetime.now(timezone.utc)
        return result

    @staticmethod
    def _fail(result: SyncResult, exc: Exception) -> SyncResult:
        logger.exception("%s pass for %s abandoned", result.mode.value.capitalize(), result.asset)
        result.status = "failed"
        result.completed_at = datetime.now(timezone.utc)
        result.error = str(exc)
        return result
