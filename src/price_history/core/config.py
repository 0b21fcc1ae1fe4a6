"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from price_history.core.exceptions import ConfigError
from price_history.core.models import Currency, StorageBackend

_DEFAULT_SYMBOLS: dict[Currency, str] = {
    Currency.USD: "BTC-USD",
    Currency.INR: "BTC-INR",
}

class FeedConfig(BaseModel):
    """External price feed configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com/v7/finance/download"
    symbols: dict[Currency, str] = dict(_DEFAULT_SYMBOLS)
    history_start: date = date(2014, 9, 17)
    request_timeout: int = 30
    rate_limit: int = 2
    user_agent: str = "Mozilla/5.0 (compatible; price-history/0.1)"

    @field_validator("symbols", mode="before")
    @classmethod
    def overlay_default_symbols(cls, v: object) -> object:
        """A partial mapping only overrides the currencies it names."""
        if not isinstance(v, dict):
            return v
        merged = {c.value: s for c, s in _DEFAULT_SYMBOLS.items()}
        merged.update({str(k).lower(): s for k, s in v.items()})
        return merged

    @field_validator("symbols")
    @classmethod
    def symbols_cover_all_currencies(cls, v: dict[Currency, str]) -> dict[Currency, str]:
        missing = [c.value for c in Currency if not v.get(c)]
        if missing:
            raise ValueError(f"symbols missing for currencies: {', '.join(missing)}")
        return v

    @field_validator("rate_limit", "request_timeout")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/price_history.db"


class SyncConfig(BaseModel):
    """Backfill and periodic sync settings."""

    model_config = ConfigDict(frozen=True)

    asset: str = "btc"
    enabled: bool = True
    backfill_on_startup: bool = True
    interval_hours: int = 4
    lookback_days: int | None = None

    @field_validator("interval_hours")
    @classmethod
    def interval_divides_day(cls, v: int) -> int:
        if v < 1 or 24 % v != 0:
            raise ValueError("interval_hours must be a divisor of 24")
        return v

    @field_validator("lookback_days")
    @classmethod
    def lookback_positive(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("lookback_days must be >= 1")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 3000
    default_limit: int = 100


class PriceHistoryConfig(BaseModel):
    """Root configuration for the price-history service."""

    model_config = ConfigDict(frozen=True)

    feed: FeedConfig = FeedConfig()
    storage: StorageConfig = StorageConfig()
    sync: SyncConfig = SyncConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_HISTORY_",
) -> PriceHistoryConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICE_HISTORY_SYNC__ASSET, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICE_HISTORY_SYNC__INTERVAL_HOURS=6  ->  sync.interval_hours = 6
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return PriceHistoryConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PRICE_HISTORY_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PRICE_HISTORY_CONFIG not found: {env_path}",
                context={"field": "PRICE_HISTORY_CONFIG", "value": env_path},
            )
        return p

    default = Path("price-history.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
