"""Source-priority upsert for daily price records."""

from __future__ import annotations

import logging
import math

from navkeep.core.models import Observation, PriceRecord, UpsertResult
from navkeep.core.time_utils import Clock, utc_now
from navkeep.history.priority import source_priority
from navkeep.store.protocol import RecordStore

logger = logging.getLogger(__name__)

_UNCHANGED = UpsertResult(changed=False, inserted_new_date=False)


class ConflictResolver:
    """Decides whether a candidate observation may overwrite the stored record.

    Rules, first match wins:

    1. Non-finite or non-positive close: rejected.
    2. No record for the date: inserted.
    3. Candidate source ranks below the stored source: rejected.
    4. Same rank and numerically equal close: no-op, so re-ingesting the
       same data never touches ``updated_at``.
    5. Otherwise: overwritten, keeping ``created_at`` and recording the
       superseded source and close.

    Equal-rank candidates with different closes overwrite each other in
    processing order; there is deliberately no tie-break on timestamps.

    Parameters
    ----------
    store : RecordStore
        Where records are read and written.
    clock : Clock
        Source of ``created_at`` / ``updated_at``. Defaults to UTC now.
    strict_sources : bool
        Raise on stored source tags missing from the priority table
        instead of ranking them lowest.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock = utc_now,
        strict_sources: bool = False,
    ) -> None:
        self._store = store
        self._clock = clock
        self._strict = strict_sources

    async def upsert(self, isin: str, observation: Observation) -> UpsertResult:
        close = observation.close
        if not math.isfinite(close) or close <= 0:
            logger.debug(
                "Rejected invalid close %r for %s %s", close, isin, observation.date
            )
            return _UNCHANGED

        existing = await self._store.get_record(isin, observation.date)
        now = self._clock()

        if existing is None:
            record = PriceRecord(
                date=observation.date,
                close=close,
                source=observation.source.value,
                observed_at=observation.observed_at,
                created_at=now,
                updated_at=now,
            )
            await self._store.save_record(isin, record)
            return UpsertResult(changed=True, inserted_new_date=True)

        existing_rank = source_priority(existing.source, strict=self._strict)
        candidate_rank = source_priority(observation.source, strict=self._strict)

        if candidate_rank < existing_rank:
            return _UNCHANGED
        if candidate_rank == existing_rank and close == existing.close:
            return _UNCHANGED

        record = PriceRecord(
            date=observation.date,
            close=close,
            source=observation.source.value,
            observed_at=observation.observed_at,
            created_at=existing.created_at,
            updated_at=now,
            previous_source=existing.source,
            previous_close=existing.close,
        )
        await self._store.save_record(isin, record)
        logger.debug(
            "Overwrote %s %s: %s (%s) -> %s (%s)",
            isin,
            observation.date,
            existing.close,
            existing.source,
            close,
            observation.source,
        )
        return UpsertResult(changed=True, inserted_new_date=False)
