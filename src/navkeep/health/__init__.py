"""Ingestion health tracking and staleness alerting."""

from navkeep.health.staleness import StalenessEvaluator, classify
from navkeep.health.tracker import HealthTracker

__all__ = ["HealthTracker", "StalenessEvaluator", "classify"]
