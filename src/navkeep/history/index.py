"""Per-instrument ordered index of dates that have a retained record."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from navkeep.store.protocol import RecordStore


def merge_dates(existing: Iterable[date], new: Iterable[date]) -> list[date]:
    """Union, deduplicate, sort ascending."""
    return sorted(set(existing) | set(new))


class DateIndex:
    """Read and maintain the date index of each instrument.

    The write path never trims; dropping old dates is RetentionPolicy's job,
    which also deletes the matching records.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def dates(self, isin: str) -> list[date]:
        return await self._store.get_index(isin)

    async def add(self, isin: str, new_dates: Iterable[date]) -> list[date]:
        """Merge ``new_dates`` into the index, persisting only on change."""
        current = await self._store.get_index(isin)
        merged = merge_dates(current, new_dates)
        if merged != current:
            await self._store.save_index(isin, merged)
        return merged

    async def replace(self, isin: str, dates: Iterable[date]) -> list[date]:
        normalized = merge_dates(dates, ())
        await self._store.save_index(isin, normalized)
        return normalized
