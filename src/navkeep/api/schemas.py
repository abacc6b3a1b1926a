"""API response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from navkeep.core.models import FreshnessState, LastOk, SourceRunSnapshot


# -- Health --


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    storage_backend: str
    freshness: FreshnessState
    age_hours: float | None = None
    threshold_hours: float
    last_ok: LastOk | None = None
    sources: dict[str, SourceRunSnapshot] = {}


# -- Instruments --


class InstrumentResponse(BaseModel):
    """A configured instrument with a summary of its stored history."""

    isin: str
    name: str | None = None
    fundsquare_id: str | None = None
    ft_symbol: str | None = None
    dates: int
    first_date: date | None = None
    last_date: date | None = None


class PricePoint(BaseModel):
    date: date
    close: float


class PriceSeriesResponse(BaseModel):
    """Ascending closes for one instrument."""

    isin: str
    count: int
    items: list[PricePoint]
    generated_at: datetime
