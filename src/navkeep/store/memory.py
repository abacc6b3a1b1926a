"""In-memory store, used by tests and the ``memory`` backend."""

from __future__ import annotations

from datetime import date

from navkeep.core.models import AlertFlag, HealthStatus, PriceRecord


class MemoryStore:
    """Dict-backed implementation of PriceHistoryStore."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, date], PriceRecord] = {}
        self.indexes: dict[str, list[date]] = {}
        self.health: HealthStatus | None = None
        self.alert: AlertFlag | None = None

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get_record(self, isin: str, day: date) -> PriceRecord | None:
        return self.records.get((isin, day))

    async def save_record(self, isin: str, record: PriceRecord) -> None:
        self.records[(isin, record.date)] = record

    async def delete_record(self, isin: str, day: date) -> bool:
        return self.records.pop((isin, day), None) is not None

    async def get_index(self, isin: str) -> list[date]:
        return list(self.indexes.get(isin, []))

    async def save_index(self, isin: str, dates: list[date]) -> None:
        self.indexes[isin] = list(dates)

    async def load_health(self) -> HealthStatus:
        return self.health if self.health is not None else HealthStatus()

    async def save_health(self, status: HealthStatus) -> None:
        self.health = status

    async def get_alert(self) -> AlertFlag | None:
        return self.alert

    async def save_alert(self, flag: AlertFlag) -> None:
        self.alert = flag

    async def delete_alert(self) -> bool:
        existed = self.alert is not None
        self.alert = None
        return existed
