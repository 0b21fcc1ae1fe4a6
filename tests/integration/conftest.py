"""Integration test fixtures: real SQLite file and HTTP client, mocked network."""

from __future__ import annotations

from pathlib import Path

import pytest

from price_history.core.config import FeedConfig, StorageConfig
from price_history.core.models import StorageBackend
from price_history.storage.store import SqlitePriceStore

FEED_BASE = "https://feed.test/download"


@pytest.fixture
def feed_config() -> FeedConfig:
    return FeedConfig(base_url=FEED_BASE, rate_limit=50, request_timeout=5)


@pytest.fixture
async def integration_store(tmp_path: Path) -> SqlitePriceStore:
    """An initialized SqlitePriceStore backed by a temp file."""
    config = StorageConfig(
        backend=StorageBackend.SQLITE,
        sqlite_path=str(tmp_path / "integration.db"),
    )
    store = SqlitePriceStore(config)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def feed_base() -> str:
    return FEED_BASE
