"""Price history persistence: protocols, backends, factory."""

from __future__ import annotations

from navkeep.core.config import StorageConfig
from navkeep.core.models import StorageBackend
from navkeep.store.json_files import JsonFileStore
from navkeep.store.memory import MemoryStore
from navkeep.store.protocol import PriceHistoryStore, RecordStore, StatusStore
from navkeep.store.sqlite import SqliteStore

__all__ = [
    "PriceHistoryStore",
    "RecordStore",
    "StatusStore",
    "JsonFileStore",
    "MemoryStore",
    "SqliteStore",
    "create_store",
]


async def create_store(config: StorageConfig) -> PriceHistoryStore:
    """Build and initialize the backend selected in config."""
    if config.backend == StorageBackend.SQLITE:
        store: PriceHistoryStore = SqliteStore(config.sqlite_path)
    elif config.backend == StorageBackend.MEMORY:
        store = MemoryStore()
    else:
        store = JsonFileStore(config.data_dir)
    await store.initialize()
    return store
