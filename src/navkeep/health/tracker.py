"""Ingestion health state: per-source run snapshots and the last success."""

from __future__ import annotations

import logging

from navkeep.core.models import HealthStatus, InstrumentResult, LastOk, SourceRunSnapshot
from navkeep.core.time_utils import Clock, utc_now
from navkeep.store.protocol import StatusStore

logger = logging.getLogger(__name__)


class HealthTracker:
    """Holds a HealthStatus in memory between ``load`` and ``save``.

    Each ``update`` replaces the source's previous snapshot outright; results
    from older runs are never merged in.
    """

    def __init__(self, status: HealthStatus | None = None, clock: Clock = utc_now) -> None:
        self._status = status if status is not None else HealthStatus()
        self._clock = clock

    @classmethod
    async def load(cls, store: StatusStore, clock: Clock = utc_now) -> HealthTracker:
        return cls(await store.load_health(), clock=clock)

    async def save(self, store: StatusStore) -> None:
        await store.save_health(self._status)

    @property
    def status(self) -> HealthStatus:
        return self._status

    def snapshot(self, results: list[InstrumentResult]) -> SourceRunSnapshot:
        """Build a run snapshot stamped with the tracker's clock."""
        return SourceRunSnapshot(
            timestamp=self._clock(),
            success_count=sum(1 for r in results if r.success),
            total_attempted=len(results),
            results=results,
        )

    def update(self, source: str, run: SourceRunSnapshot) -> HealthStatus:
        sources = dict(self._status.sources)
        sources[str(source)] = run
        last_ok = self._status.last_ok
        if run.success_count > 0:
            last_ok = LastOk(timestamp=self._clock(), source=str(source))
        self._status = HealthStatus(last_ok=last_ok, sources=sources)
        logger.debug(
            "Health updated for %s: %d/%d", source, run.success_count, run.total_attempted
        )
        return self._status
