"""Price point persistence."""

from price_history.storage.store import PriceStore, SqlitePriceStore, create_store

__all__ = [
    "PriceStore",
    "SqlitePriceStore",
    "create_store",
]
