"""Sequences one source's run across all instruments."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from navkeep.core.config import DEFAULT_RETENTION_WINDOW
from navkeep.core.exceptions import IngestionError, ParsingError, TotalOutageError
from navkeep.core.models import Instrument, InstrumentResult, Observation, SourceRunSnapshot
from navkeep.core.time_utils import Clock, utc_now
from navkeep.health.tracker import HealthTracker
from navkeep.history.index import DateIndex
from navkeep.history.resolver import ConflictResolver
from navkeep.history.retention import RetentionPolicy
from navkeep.ingestion.pacing import RequestPacer
from navkeep.sources.base import SourceAdapter
from navkeep.store.protocol import PriceHistoryStore

logger = logging.getLogger(__name__)


def _is_valid_close(observation: Observation) -> bool:
    return math.isfinite(observation.close) and observation.close > 0


@dataclass
class RunOutcome:
    """What one source run did."""

    source: str
    snapshot: SourceRunSnapshot
    trimmed: dict[str, int] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return self.snapshot.success_count

    @property
    def results(self) -> list[InstrumentResult]:
        return self.snapshot.results


class IngestionOrchestrator:
    """Drives a source adapter over instruments, one at a time.

    Per instrument: fetch → upsert each observation → extend the date index →
    enforce retention. After the last instrument the source's health snapshot
    is replaced. A run in which no instrument succeeded raises
    ``TotalOutageError`` once health has been saved; partial failures don't.

    Only one run per source may be active at a time. Runs of different
    sources may overlap; the resolver's priority rule keeps them consistent.

    Parameters
    ----------
    store : PriceHistoryStore
        Backend for records, indexes and health.
    retention_window : int
        Dates kept per instrument.
    pacer : RequestPacer | None
        Waited on before every fetch. No pacing if None.
    clock : Clock
        Timestamps for records and health.
    strict_sources : bool
        Fail on stored source tags outside the priority table.
    """

    def __init__(
        self,
        store: PriceHistoryStore,
        retention_window: int = DEFAULT_RETENTION_WINDOW,
        pacer: RequestPacer | None = None,
        clock: Clock = utc_now,
        strict_sources: bool = False,
    ) -> None:
        self._store = store
        self._clock = clock
        self._pacer = pacer or RequestPacer()
        self._resolver = ConflictResolver(store, clock=clock, strict_sources=strict_sources)
        self._index = DateIndex(store)
        self._retention = RetentionPolicy(store, window=retention_window)
        self._trimmed: dict[str, int] = {}

    async def ingest_instrument(
        self, adapter: SourceAdapter, instrument: Instrument
    ) -> InstrumentResult:
        """Fetch and merge one instrument, then trim it. Never touches health."""
        isin = instrument.isin
        source = adapter.source
        try:
            observations = await adapter.fetch(instrument)
            if not observations:
                raise IngestionError(
                    "No observations returned",
                    context={"isin": isin, "source": str(source)},
                )
            valid = [o for o in observations if _is_valid_close(o)]
            if not valid:
                raise ParsingError(
                    "No valid prices returned",
                    context={
                        "isin": isin,
                        "source": str(source),
                        "observed": len(observations),
                    },
                )
        except IngestionError as e:
            logger.error("[%s] Error fetching %s: %s", source, isin, e)
            result = InstrumentResult(isin=isin, success=False, error=str(e))
        else:
            skipped = len(observations) - len(valid)
            if skipped:
                logger.warning("[%s] Skipped %d invalid prices for %s", source, skipped, isin)
            updated = 0
            new_dates = []
            for observation in valid:
                outcome = await self._resolver.upsert(isin, observation)
                if outcome.changed:
                    updated += 1
                if outcome.inserted_new_date:
                    new_dates.append(observation.date)
            if new_dates:
                await self._index.add(isin, new_dates)

            latest = max(valid, key=lambda o: o.date)
            if updated:
                logger.info("[%s] Updated %d prices for %s", source, updated, isin)
            else:
                logger.info("[%s] No changes for %s", source, isin)
            result = InstrumentResult(
                isin=isin,
                success=True,
                observed=len(observations),
                updated=updated,
                inserted=len(new_dates),
                latest_date=latest.date,
                latest_close=latest.close,
            )

        trimmed = await self._retention.enforce(isin)
        if trimmed:
            self._trimmed[isin] = trimmed
        return result

    async def run(
        self, adapter: SourceAdapter, instruments: Sequence[Instrument]
    ) -> RunOutcome:
        source = str(adapter.source)
        logger.info("=== %s update started (%d instruments) ===", source, len(instruments))
        self._trimmed = {}

        results: list[InstrumentResult] = []
        for instrument in instruments:
            await self._pacer.wait()
            results.append(await self.ingest_instrument(adapter, instrument))

        tracker = await HealthTracker.load(self._store, clock=self._clock)
        snapshot = tracker.snapshot(results)
        tracker.update(source, snapshot)
        await tracker.save(self._store)

        logger.info(
            "=== %s update completed (%d/%d successful) ===",
            source,
            snapshot.success_count,
            snapshot.total_attempted,
        )

        if snapshot.success_count == 0:
            raise TotalOutageError(
                f"No instruments were updated from {source}",
                context={
                    "source": source,
                    "total": snapshot.total_attempted,
                    "errors": {r.isin: r.error for r in results},
                },
            )

        return RunOutcome(source=source, snapshot=snapshot, trimmed=dict(self._trimmed))
