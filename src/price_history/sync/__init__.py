"""Feed-to-store reconciliation and its periodic trigger."""

from price_history.sync.reconciler import Reconciler, SyncResult
from price_history.sync.scheduler import SyncScheduler, next_run

__all__ = [
    "Reconciler",
    "SyncResult",
    "SyncScheduler",
    "next_run",
]
