"""Custom exception hierarchy for price-history."""

from typing import Any


class PriceHistoryError(Exception):
    """Base exception for all price-history errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceHistoryError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str: the config field that failed validation
        value: Any: the invalid value
    """


class FeedError(PriceHistoryError):
    """Failed to fetch a price series from the external feed.

    Policy: abort the current sync pass. Reads keep serving stored data.

    Context keys:
        symbol: str: the feed symbol being fetched
        url: str: the URL that was requested
        status_code: int | None: HTTP status if a response arrived
    """


class DecodeError(FeedError):
    """A single feed row could not be decoded.

    Policy: drop the row and keep decoding.

    Context keys:
        line: int: 1-based line number in the payload
        reason: str: why the row was rejected
    """


class StorageError(PriceHistoryError):
    """Database operation failed.

    Policy: raise immediately. Read requests answer 500, sync passes abort.

    Context keys:
        operation: str: "upsert", "insert_many", "query", etc.
        table: str: the table involved
    """


class QueryValidationError(PriceHistoryError):
    """A read request carried a malformed filter or body.

    Policy: reject with a client error before touching the store.

    Context keys:
        field: str: the offending parameter
        value: Any: what was supplied
    """
