"""External price feed: HTTP client and CSV series decoder."""

from price_history.feed.client import CsvFeedClient, FeedClient
from price_history.feed.decoder import DecodeStats, decode_series, iter_closes, parse_row

__all__ = [
    "CsvFeedClient",
    "FeedClient",
    "DecodeStats",
    "decode_series",
    "iter_closes",
    "parse_row",
]
