"""Shared pytest fixtures for price-history."""

from __future__ import annotations

from datetime import date

import pytest

from price_history.core.config import StorageConfig
from price_history.core.models import Currency, PricePoint, StorageBackend
from price_history.storage.store import SqlitePriceStore

CSV_HEADER = "Date,Open,High,Low,Close,Adj Close,Volume"

SYMBOLS = {Currency.USD: "BTC-USD", Currency.INR: "BTC-INR"}


def make_csv(rows: list[tuple[str, object]]) -> str:
    """Build a feed payload from ``(date, close)`` pairs."""
    lines = [CSV_HEADER]
    for day, close in rows:
        lines.append(f"{day},{close},{close},{close},{close},{close},1000")
    return "\n".join(lines) + "\n"


class FakeFeed:
    """In-memory FeedClient returning canned payloads per symbol."""

    def __init__(self, payloads: dict[str, str] | None = None, error: Exception | None = None):
        self.payloads = payloads or {}
        self.error = error
        self.calls: list[tuple[str, object, object]] = []

    async def fetch_series(self, symbol, start=None, end=None) -> str:
        self.calls.append((symbol, start, end))
        if self.error is not None:
            raise self.error
        return self.payloads[symbol]

    async def close(self) -> None:
        pass


@pytest.fixture
def make_point():
    """Factory for PricePoint with overridable defaults."""

    def _make(**overrides) -> PricePoint:
        defaults = dict(date=date(2024, 1, 15), asset="btc", usd=42000.0, inr=3500000.0)
        defaults.update(overrides)
        return PricePoint(**defaults)

    return _make


@pytest.fixture
async def store():
    """An initialized in-memory SqlitePriceStore."""
    config = StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=":memory:")
    s = SqlitePriceStore(config)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def feed_payloads() -> dict[str, str]:
    """Three aligned days of BTC history in both currencies."""
    return {
        "BTC-USD": make_csv(
            [("2024-01-01", 42280.234), ("2024-01-02", 44187.14), ("2024-01-03", 42848.176)]
        ),
        "BTC-INR": make_csv(
            [("2024-01-01", 3518513.1), ("2024-01-02", 3677172.55), ("2024-01-03", 3565711.0)]
        ),
    }


@pytest.fixture
def csv_payload():
    """The ``make_csv`` payload builder."""
    return make_csv


@pytest.fixture
def fake_feed(feed_payloads):
    """Factory for FakeFeed; defaults to the three-day payloads."""

    def _make(payloads: dict[str, str] | None = None, error: Exception | None = None) -> FakeFeed:
        return FakeFeed(payloads if payloads is not None else feed_payloads, error=error)

    return _make
