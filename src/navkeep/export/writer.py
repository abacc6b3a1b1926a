"""Static JSON export of each instrument's recent closes.

Writes one ``<ISIN>.json`` per instrument plus a consolidated file keyed by
ISIN. Each series is an ascending list of ``{"date", "close"}`` entries
covering the last ``window`` indexed dates.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from navkeep.core.exceptions import StorageError
from navkeep.core.models import Instrument
from navkeep.store.protocol import RecordStore

logger = logging.getLogger(__name__)


async def build_series(store: RecordStore, isin: str, window: int) -> list[dict[str, Any]]:
    """Ascending ``{"date", "close"}`` points for the last ``window`` indexed dates.

    Dates whose record is missing or unreadable are skipped.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    dates = sorted(await store.get_index(isin))[-window:]
    series: list[dict[str, Any]] = []
    for day in dates:
        record = await store.get_record(isin, day)
        if record is None:
            logger.warning("Missing record for %s on %s; skipped in export", isin, day)
            continue
        series.append({"date": day.isoformat(), "close": record.close})
    return series


def _dump(path: Path, payload: Any) -> None:
    try:
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as e:
        raise StorageError(
            f"Failed to write export file: {e}",
            context={"operation": "export", "path": str(path)},
        ) from e


async def write_exports(
    store: RecordStore,
    instruments: Sequence[Instrument],
    output_dir: str | Path,
    window: int,
    consolidated_name: str = "all-funds.json",
) -> dict[str, int]:
    """Write per-instrument and consolidated exports.

    Returns the number of points written for each ISIN.
    """
    out = Path(output_dir)
    try:
        out.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(
            f"Cannot create export directory: {e}",
            context={"operation": "export", "path": str(out)},
        ) from e

    consolidated: dict[str, list[dict[str, Any]]] = {}
    counts: dict[str, int] = {}
    for instrument in instruments:
        series = await build_series(store, instrument.isin, window)
        _dump(out / f"{instrument.isin}.json", series)
        consolidated[instrument.isin] = series
        counts[instrument.isin] = len(series)
        logger.info("Exported %d points for %s", len(series), instrument.isin)

    _dump(out / consolidated_name, consolidated)
    logger.info("Consolidated export written to %s", out / consolidated_name)
    return counts
