"""price_history.core: foundation types, config, and exceptions."""

from price_history.core.config import (
    APIConfig,
    FeedConfig,
    PriceHistoryConfig,
    StorageConfig,
    SyncConfig,
    load_config,
)
from price_history.core.exceptions import (
    ConfigError,
    DecodeError,
    FeedError,
    PriceHistoryError,
    QueryValidationError,
    StorageError,
)
from price_history.core.models import (
    Asset,
    Currency,
    HistoryQuery,
    PointFilter,
    PricePoint,
    PriceRecord,
    SortOrder,
    StorageBackend,
    SyncMode,
)

__all__ = [
    # Type aliases
    "Asset",
    "PriceRecord",
    # Enums
    "Currency",
    "SortOrder",
    "SyncMode",
    "StorageBackend",
    # Models
    "PricePoint",
    "PointFilter",
    "HistoryQuery",
    # Config
    "PriceHistoryConfig",
    "FeedConfig",
    "StorageConfig",
    "SyncConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PriceHistoryError",
    "ConfigError",
    "FeedError",
    "DecodeError",
    "StorageError",
    "QueryValidationError",
]
