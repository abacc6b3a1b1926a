"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

ISIN = str
SourceTag = str

_ISIN_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")

# --- Enumerations ---


class Source(StrEnum):
    """Price sources known to the priority table."""

    FT = "ft"
    FUNDSQUARE = "fundsquare"
    CSV = "csv"


class StorageBackend(StrEnum):
    """Supported storage backends."""

    JSON = "json"
    SQLITE = "sqlite"
    MEMORY = "memory"


class FreshnessState(StrEnum):
    """Alert state derived from the last successful ingestion."""

    UNKNOWN = "unknown"
    FRESH = "fresh"
    STALE = "stale"


# --- Instrument ---


class Instrument(BaseModel):
    """A tracked fund and its identifiers at each source."""

    model_config = ConfigDict(frozen=True)

    isin: ISIN
    name: str | None = None
    fundsquare_id: str | None = None
    ft_symbol: str | None = None

    @field_validator("isin")
    @classmethod
    def isin_format(cls, v: str) -> str:
        normalized = v.strip().upper()
        if not _ISIN_RE.match(normalized):
            raise ValueError(f"Invalid ISIN: {v!r}")
        return normalized

    @property
    def label(self) -> str:
        return f"{self.isin} ({self.name})" if self.name else self.isin


# --- Price Models ---


class Observation(BaseModel):
    """A candidate closing price produced by a source adapter.

    Not validated beyond types: rejecting non-finite or non-positive closes
    is the resolver's job, so adapters can hand over whatever they parsed.
    """

    model_config = ConfigDict(frozen=True)

    date: date
    close: float
    source: Source
    observed_at: datetime | None = None


class PriceRecord(BaseModel):
    """The retained closing price for one instrument on one date."""

    model_config = ConfigDict(frozen=True)

    date: date
    close: float
    source: SourceTag
    observed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    previous_source: SourceTag | None = None
    previous_close: float | None = None

    @field_validator("close")
    @classmethod
    def close_finite_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError(f"close must be finite and > 0, got {v}")
        return v


class UpsertResult(BaseModel):
    """Outcome of a single upsert attempt."""

    model_config = ConfigDict(frozen=True)

    changed: bool
    inserted_new_date: bool = False


# --- Health Models ---


class InstrumentResult(BaseModel):
    """Per-instrument outcome inside one source run."""

    model_config = ConfigDict(frozen=True)

    isin: ISIN
    success: bool
    error: str | None = None
    observed: int = 0
    updated: int = 0
    inserted: int = 0
    latest_date: date | None = None
    latest_close: float | None = None


class SourceRunSnapshot(BaseModel):
    """The most recent run of one source. Replaced wholesale on every run."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    success_count: int
    total_attempted: int
    results: list[InstrumentResult] = []

    @property
    def failed(self) -> list[InstrumentResult]:
        return [r for r in self.results if not r.success]


class LastOk(BaseModel):
    """When, and from which source, the last successful run finished."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: SourceTag


class HealthStatus(BaseModel):
    """Process-wide ingestion health, shared by every source."""

    model_config = ConfigDict(frozen=True)

    last_ok: LastOk | None = None
    sources: dict[SourceTag, SourceRunSnapshot] = {}


class AlertFlag(BaseModel):
    """Diagnostic snapshot written while ingestion is stale."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    last_ok: LastOk
    age_hours: float
    threshold_hours: float
    sources: dict[SourceTag, SourceRunSnapshot] = {}


class StalenessReport(BaseModel):
    """Result of one staleness evaluation."""

    model_config = ConfigDict(frozen=True)

    state: FreshnessState
    checked_at: datetime
    threshold_hours: float
    age_hours: float | None = None
    last_ok: LastOk | None = None
    flag_written: bool = False
    flag_cleared: bool = False
