"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from navkeep.core.exceptions import ConfigError
from navkeep.core.models import Instrument, Source, StorageBackend

DEFAULT_RETENTION_WINDOW = 3653


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.JSON
    data_dir: str = "./data"
    sqlite_path: str = "./data/navkeep.db"


class FundsquareConfig(BaseModel):
    """Fundsquare NAV endpoint configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = "https://www.fundsquare.net"
    currency: str = "EUR"
    timezone: str = "Europe/Madrid"
    request_timeout: float = 30.0
    request_delay: float = 0.0

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("request_delay")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("request_delay must be >= 0")
        return v


class FTConfig(BaseModel):
    """Financial Times historical-prices page configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = "https://markets.ft.com"
    request_timeout: float = 30.0
    request_delay: float = 2.0

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("request_delay")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("request_delay must be >= 0")
        return v


class SourcesConfig(BaseModel):
    """Aggregated source configuration."""

    model_config = ConfigDict(frozen=True)

    fundsquare: FundsquareConfig = FundsquareConfig()
    ft: FTConfig = FTConfig()

    def is_enabled(self, source: Source) -> bool:
        if source == Source.FT:
            return self.ft.enabled
        if source == Source.FUNDSQUARE:
            return self.fundsquare.enabled
        return True


class RetentionConfig(BaseModel):
    """How many of the most recent dates to keep per instrument."""

    model_config = ConfigDict(frozen=True)

    window: int = DEFAULT_RETENTION_WINDOW

    @field_validator("window")
    @classmethod
    def window_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retention window must be >= 1")
        return v


class HealthConfig(BaseModel):
    """Staleness alerting configuration."""

    model_config = ConfigDict(frozen=True)

    stale_hours: float = 20.0
    strict_sources: bool = False

    @field_validator("stale_hours")
    @classmethod
    def stale_hours_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("stale_hours must be > 0")
        return v


class ExportConfig(BaseModel):
    """Downstream JSON export configuration."""

    model_config = ConfigDict(frozen=True)

    output_dir: str = "./json"
    window: int = DEFAULT_RETENTION_WINDOW
    consolidated_name: str = "all-funds.json"

    @field_validator("window")
    @classmethod
    def window_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("export window must be >= 1")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class NavkeepConfig(BaseModel):
    """Root configuration for the entire navkeep system."""

    model_config = ConfigDict(frozen=True)

    instruments: list[Instrument]
    storage: StorageConfig = StorageConfig()
    sources: SourcesConfig = SourcesConfig()
    retention: RetentionConfig = RetentionConfig()
    health: HealthConfig = HealthConfig()
    export: ExportConfig = ExportConfig()
    api: APIConfig = APIConfig()

    @field_validator("instruments")
    @classmethod
    def instruments_not_empty(cls, v: list[Instrument]) -> list[Instrument]:
        if not v:
            raise ValueError("at least one instrument must be configured")
        return v

    @model_validator(mode="after")
    def isins_unique(self) -> NavkeepConfig:
        seen: set[str] = set()
        for instrument in self.instruments:
            if instrument.isin in seen:
                raise ValueError(f"duplicate instrument ISIN: {instrument.isin}")
            seen.add(instrument.isin)
        return self

    def get_instrument(self, isin: str) -> Instrument | None:
        upper = isin.strip().upper()
        for instrument in self.instruments:
            if instrument.isin == upper:
                return instrument
        return None


def load_config(
    config_path: str | None = None,
    env_prefix: str = "NAVKEEP_",
) -> NavkeepConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (NAVKEEP_HEALTH__STALE_HOURS, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        NAVKEEP_SOURCES__FT__REQUEST_DELAY=5  ->  sources.ft.request_delay = 5
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return NavkeepConfig.model_validate(merged)
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

    env_path = os.environ.get("NAVKEEP_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from NAVKEEP_CONFIG not found: {env_path}",
                context={"field": "NAVKEEP_CONFIG", "value": env_path},
            )
        return p

    default = Path("navkeep.yml")
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
                target[part] = {}
            else:
                target[part] = dict(target[part])
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
