"""Bounded retention of per-instrument price history."""

from __future__ import annotations

import logging

from navkeep.core.config import DEFAULT_RETENTION_WINDOW
from navkeep.history.index import DateIndex
from navkeep.store.protocol import RecordStore

logger = logging.getLogger(__name__)


class RetentionPolicy:
    """Keeps only the newest ``window`` dates of each instrument.

    Parameters
    ----------
    store : RecordStore
        Backend holding records and indexes.
    window : int
        Maximum number of dates retained per instrument.
    """

    def __init__(self, store: RecordStore, window: int = DEFAULT_RETENTION_WINDOW) -> None:
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self._store = store
        self._index = DateIndex(store)
        self._window = window

    @property
    def window(self) -> int:
        return self._window

    async def enforce(self, isin: str) -> int:
        """Trim one instrument. Returns the number of dates dropped."""
        dates = await self._index.dates(isin)
        excess = len(dates) - self._window
        if excess <= 0:
            return 0

        expired, kept = dates[:excess], dates[excess:]
        for day in expired:
            if await self._store.delete_record(isin, day):
                logger.info("Deleted old data: %s %s", isin, day.isoformat())
        await self._index.replace(isin, kept)
        return len(expired)
