"""Integration test fixtures: real file and database I/O, network mocked."""

from __future__ import annotations

from pathlib import Path

import pytest

from navkeep.store.json_files import JsonFileStore
from navkeep.store.sqlite import SqliteStore


@pytest.fixture(params=["json", "sqlite"])
async def integration_store(request, tmp_path: Path):
    """An initialized on-disk store for each persistent backend."""
    if request.param == "json":
        store = JsonFileStore(str(tmp_path / "data"))
    else:
        store = SqliteStore(str(tmp_path / "navkeep.db"))
    await store.initialize()
    yield store
    await store.close()
