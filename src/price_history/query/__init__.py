"""Read-side query service."""

from price_history.query.service import QueryService, parse_history_query

__all__ = [
    "QueryService",
    "parse_history_query",
]
