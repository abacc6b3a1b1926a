"""Derives the alert state from the last successful ingestion.

Runs on its own schedule, independent of any ingestion run, and is safe to
re-run at any cadence: writing the flag overwrites it, clearing a missing
flag is a no-op.
"""

from __future__ import annotations

import logging
from datetime import datetime

from navkeep.core.models import (
    AlertFlag,
    FreshnessState,
    HealthStatus,
    StalenessReport,
)
from navkeep.core.time_utils import hours_between, utc_now
from navkeep.store.protocol import StatusStore

logger = logging.getLogger(__name__)


def classify(
    status: HealthStatus, threshold_hours: float, now: datetime
) -> tuple[FreshnessState, float | None]:
    """Pure freshness verdict: (state, age in hours or None)."""
    if status.last_ok is None:
        return FreshnessState.UNKNOWN, None
    age = hours_between(status.last_ok.timestamp, now)
    if age >= threshold_hours:
        return FreshnessState.STALE, age
    return FreshnessState.FRESH, age


class StalenessEvaluator:
    """Raises or clears the alert flag based on ``last_ok`` age.

    Parameters
    ----------
    store : StatusStore
        Holds the health status (read) and the alert flag (written/deleted).
    threshold_hours : float
        Age at or beyond which ingestion counts as stale.
    """

    def __init__(self, store: StatusStore, threshold_hours: float = 20.0) -> None:
        if threshold_hours <= 0:
            raise ValueError(f"threshold_hours must be > 0, got {threshold_hours}")
        self._store = store
        self._threshold = threshold_hours

    @property
    def threshold_hours(self) -> float:
        return self._threshold

    async def evaluate(self, now: datetime | None = None) -> StalenessReport:
        now = now or utc_now()
        status = await self._store.load_health()
        state, age = classify(status, self._threshold, now)

        if state == FreshnessState.UNKNOWN:
            logger.info("No successful updates recorded yet")
            return StalenessReport(
                state=state, checked_at=now, threshold_hours=self._threshold
            )

        if state == FreshnessState.STALE:
            flag = AlertFlag(
                timestamp=now,
                last_ok=status.last_ok,
                age_hours=age,
                threshold_hours=self._threshold,
                sources=status.sources,
            )
            await self._store.save_alert(flag)
            logger.error(
                "Data is STALE (%.2f hours old, threshold: %sh)", age, self._threshold
            )
            for source, run in sorted(status.sources.items()):
                for failed in run.failed:
                    logger.error("  %s %s: %s", source, failed.isin, failed.error or "failed")
            return StalenessReport(
                state=state,
                checked_at=now,
                threshold_hours=self._threshold,
                age_hours=age,
                last_ok=status.last_ok,
                flag_written=True,
            )

        cleared = await self._store.delete_alert()
        if cleared:
            logger.info("Removed alert flag (data is now fresh)")
        logger.info("Data is FRESH (%.2f hours old, threshold: %sh)", age, self._threshold)
        return StalenessReport(
            state=state,
            checked_at=now,
            threshold_hours=self._threshold,
            age_hours=age,
            last_ok=status.last_ok,
            flag_cleared=cleared,
        )
