"""FastAPI route definitions for the navkeep API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

import navkeep
from navkeep.api.deps import get_config, get_store
from navkeep.api.schemas import (
    HealthResponse,
    InstrumentResponse,
    PricePoint,
    PriceSeriesResponse,
)
from navkeep.core.config import NavkeepConfig
from navkeep.core.time_utils import utc_now
from navkeep.export.writer import build_series
from navkeep.health.staleness import classify
from navkeep.store.protocol import PriceHistoryStore

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: PriceHistoryStore = Depends(get_store),
    config: NavkeepConfig = Depends(get_config),
):
    """Ingestion freshness and per-source run snapshots. Never touches the alert flag."""
    status = await store.load_health()
    state, age = classify(status, config.health.stale_hours, utc_now())
    return HealthResponse(
        status="ok",
        version=navkeep.__version__,
        storage_backend=str(config.storage.backend.value),
        freshness=state,
        age_hours=age,
        threshold_hours=config.health.stale_hours,
        last_ok=status.last_ok,
        sources=status.sources,
    )


# -- Instruments --


@router.get("/instruments", response_model=list[InstrumentResponse])
async def list_instruments(
    store: PriceHistoryStore = Depends(get_store),
    config: NavkeepConfig = Depends(get_config),
):
    """Configured instruments with the size and range of their history."""
    items = []
    for instrument in config.instruments:
        dates = await store.get_index(instrument.isin)
        items.append(
            InstrumentResponse(
                isin=instrument.isin,
                name=instrument.name,
                fundsquare_id=instrument.fundsquare_id,
                ft_symbol=instrument.ft_symbol,
                dates=len(dates),
                first_date=dates[0] if dates else None,
                last_date=dates[-1] if dates else None,
            )
        )
    return items


@router.get("/instruments/{isin}/prices", response_model=PriceSeriesResponse)
async def get_prices(
    isin: str,
    limit: int | None = Query(None, ge=1, description="Most recent N dates; all if omitted"),
    store: PriceHistoryStore = Depends(get_store),
    config: NavkeepConfig = Depends(get_config),
):
    """Ascending closing prices for one configured instrument."""
    instrument = config.get_instrument(isin)
    if instrument is None:
        raise HTTPException(
            status_code=404,
            detail=f"Instrument '{isin.upper()}' is not configured",
        )

    window = limit or config.retention.window
    series = await build_series(store, instrument.isin, window)
    return PriceSeriesResponse(
        isin=instrument.isin,
        count=len(series),
        items=[PricePoint(date=p["date"], close=p["close"]) for p in series],
        generated_at=utc_now(),
    )
