"""Tests for price_history.core.config."""

import os
from datetime import date

import pytest
from pydantic import ValidationError

from price_history.core.config import (
    FeedConfig,
    PriceHistoryConfig,
    SyncConfig,
    _auto_cast,
    _merge_env_vars,
    load_config,
)
from price_history.core.exceptions import ConfigError
from price_history.core.models import Currency, StorageBackend


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and working directory."""
    for key in list(os.environ):
        if key.startswith("PRICE_HISTORY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestFeedConfig:
    def test_defaults(self):
        c = FeedConfig()
        assert c.symbols[Currency.USD] == "BTC-USD"
        assert c.symbols[Currency.INR] == "BTC-INR"
        assert c.history_start == date(2014, 9, 17)

    def test_partial_symbols_keep_defaults(self):
        c = FeedConfig(symbols={"usd": "ETH-USD"})
        assert c.symbols[Currency.USD] == "ETH-USD"
        assert c.symbols[Currency.INR] == "BTC-INR"

    def test_blank_symbol_rejected(self):
        with pytest.raises(ValidationError, match="symbols missing for currencies: inr"):
            FeedConfig(symbols={"inr": ""})

    def test_rate_limit_positive(self):
        with pytest.raises(ValidationError):
            FeedConfig(rate_limit=0)


class TestSyncConfig:
    def test_defaults(self):
        c = SyncConfig()
        assert c.asset == "btc"
        assert c.interval_hours == 4
        assert c.lookback_days is None

    @pytest.mark.parametrize("hours", [0, 5, 7, 25])
    def test_interval_must_divide_day(self, hours):
        with pytest.raises(ValidationError, match="divisor of 24"):
            SyncConfig(interval_hours=hours)

    def test_lookback_positive(self):
        with pytest.raises(ValidationError):
            SyncConfig(lookback_days=0)


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()
        assert isinstance(config, PriceHistoryConfig)
        assert config.storage.backend == StorageBackend.SQLITE
        assert config.api.port == 3000

    def test_yaml_loading(self, tmp_path):
        path = tmp_path / "custom.yml"
        path.write_text("sync:\n  asset: eth\n  interval_hours: 6\napi:\n  port: 9000\n")
        config = load_config(str(path))
        assert config.sync.asset == "eth"
        assert config.sync.interval_hours == 6
        assert config.api.port == 9000

    def test_default_file_picked_up(self, tmp_path):
        (tmp_path / "price-history.yml").write_text("sync:\n  enabled: false\n")
        assert load_config().sync.enabled is False

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "c.yml"
        path.write_text("sync:\n  interval_hours: 6\n")
        monkeypatch.setenv("PRICE_HISTORY_SYNC__INTERVAL_HOURS", "8")
        assert load_config(str(path)).sync.interval_hours == 8

    def test_env_nested_symbol(self, monkeypatch):
        monkeypatch.setenv("PRICE_HISTORY_FEED__SYMBOLS__USD", "ETH-USD")
        config = load_config()
        assert config.feed.symbols[Currency.USD] == "ETH-USD"
        assert config.feed.symbols[Currency.INR] == "BTC-INR"

    def test_config_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yml"
        path.write_text("api:\n  default_limit: 10\n")
        monkeypatch.setenv("PRICE_HISTORY_CONFIG", str(path))
        assert load_config().api.default_limit == 10

    def test_missing_explicit_file(self):
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config("/nonexistent/price-history.yml")

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(str(path))

    def test_invalid_value_wrapped(self, monkeypatch):
        monkeypatch.setenv("PRICE_HISTORY_SYNC__INTERVAL_HOURS", "5")
        with pytest.raises(ConfigError):
            load_config()

    def test_config_is_frozen(self):
        config = load_config()
        with pytest.raises(ValidationError):
            config.sync = SyncConfig()  # type: ignore[misc]


class TestAutoCast:
    def test_bool(self):
        assert _auto_cast("true") is True
        assert _auto_cast("FALSE") is False

    def test_numbers(self):
        assert _auto_cast("42") == 42
        assert _auto_cast("1.5") == 1.5

    def test_string(self):
        assert _auto_cast("BTC-USD") == "BTC-USD"


class TestMergeEnvVars:
    def test_simple_override(self, monkeypatch):
        monkeypatch.setenv("TEST_API__PORT", "8080")
        assert _merge_env_vars({}, "TEST_") == {"api": {"port": 8080}}

    def test_keeps_yaml_siblings(self, monkeypatch):
        monkeypatch.setenv("TEST_SYNC__ASSET", "eth")
        merged = _merge_env_vars({"sync": {"interval_hours": 6}}, "TEST_")
        assert merged == {"sync": {"interval_hours": 6, "asset": "eth"}}

    def test_skips_config_key(self, monkeypatch):
        monkeypatch.setenv("TEST_CONFIG", "/some/path")
        assert _merge_env_vars({}, "TEST_") == {}
