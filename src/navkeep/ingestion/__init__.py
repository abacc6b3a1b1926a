"""Ingestion run sequencing and pacing."""

from navkeep.ingestion.orchestrator import IngestionOrchestrator, RunOutcome
from navkeep.ingestion.pacing import RequestPacer

__all__ = ["IngestionOrchestrator", "RunOutcome", "RequestPacer"]
