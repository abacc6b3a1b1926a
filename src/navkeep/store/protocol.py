"""Persistence protocols for price history and ingestion health.

Only logical keys are defined here — ``(isin, date) → PriceRecord``,
``isin → [date]``, one health status, one optional alert flag. Backends
choose their own physical layout.

Read contract: reads never raise for a missing or unreadable artifact; they
return ``None`` / empty / default and log a warning. Write contract: a write
that cannot complete raises ``StorageError``.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from navkeep.core.models import AlertFlag, HealthStatus, PriceRecord


@runtime_checkable
class RecordStore(Protocol):
    """Keyed persistence of one record per (instrument, date) plus its index."""

    async def get_record(self, isin: str, day: date) -> PriceRecord | None: ...
    async def save_record(self, isin: str, record: PriceRecord) -> None: ...
    async def delete_record(self, isin: str, day: date) -> bool:
        """Remove a record. Returns False if it was already absent."""
        ...

    async def get_index(self, isin: str) -> list[date]: ...
    async def save_index(self, isin: str, dates: list[date]) -> None: ...


@runtime_checkable
class StatusStore(Protocol):
    """Persistence of the shared health status and the alert flag."""

    async def load_health(self) -> HealthStatus: ...
    async def save_health(self, status: HealthStatus) -> None: ...
    async def get_alert(self) -> AlertFlag | None: ...
    async def save_alert(self, flag: AlertFlag) -> None: ...
    async def delete_alert(self) -> bool:
        """Remove the alert flag. Returns False if none was present."""
        ...


@runtime_checkable
class PriceHistoryStore(RecordStore, StatusStore, Protocol):
    """Full backend: records, indexes, health, alert, and lifecycle."""

    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
