"""Price history reconciliation: priority table, upsert, index, retention."""

from navkeep.history.index import DateIndex, merge_dates
from navkeep.history.priority import SOURCE_PRIORITY, UNKNOWN_PRIORITY, source_priority
from navkeep.history.resolver import ConflictResolver
from navkeep.history.retention import RetentionPolicy

__all__ = [
    "SOURCE_PRIORITY",
    "UNKNOWN_PRIORITY",
    "source_priority",
    "ConflictResolver",
    "DateIndex",
    "merge_dates",
    "RetentionPolicy",
]
