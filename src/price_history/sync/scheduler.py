"""Fixed-cadence trigger for incremental sync passes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from price_history.sync.reconciler import Reconciler, SyncResult

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_run(now: datetime, interval_hours: int) -> datetime:
    """Next wall-clock boundary strictly after ``now``.

    Boundaries fall on minute 0 of every UTC hour divisible by
    ``interval_hours`` (``0 */4 * * *`` for the default cadence).
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    slot = (now.hour // interval_hours + 1) * interval_hours
    return midnight + timedelta(hours=slot)


class SyncScheduler:
    """Runs one incremental sync per interval on a background asyncio task.

    Overlap is not prevented: passes are idempotent, and the interval is long
    compared with a pass.

    Parameters
    ----------
    reconciler : Reconciler
        Executes the passes.
    interval_hours : int
        Cadence; must divide 24.
    backfill_on_start : bool
        Run one backfill before the first scheduled sync.
    clock, sleep
        Injection points for tests.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        interval_hours: int = 4,
        backfill_on_start: bool = True,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._reconciler = reconciler
        self._interval_hours = interval_hours
        self._backfill_on_start = backfill_on_start
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.last_result: SyncResult | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run(self) -> datetime:
        return next_run(self._clock(), self._interval_hours)

    async def run_once(self, now: datetime | None = None) -> SyncResult:
        """Run exactly one incremental pass."""
        result = await self._reconciler.sync(now or self._clock())
        self.last_result = result
        return result

    async def run_backfill(self, now: datetime | None = None) -> SyncResult:
        result = await self._reconciler.backfill(now or self._clock())
        self.last_result = result
        return result

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="price-history-sync")
        logger.info("Sync scheduler started (every %dh)", self._interval_hours)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sync scheduler stopped")

    async def _loop(self) -> None:
        if self._backfill_on_start:
            await self.run_backfill()

        while True:
            now = self._clock()
            due = next_run(now, self._interval_hours)
            logger.debug("Next sync for %s at %s", self._reconciler.asset, due.isoformat())
            await self._sleep(max((due - now).total_seconds(), 0.0))
            await self.run_once()
