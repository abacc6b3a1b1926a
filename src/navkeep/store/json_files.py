"""Flat-file JSON store.

Layout under ``data_dir``::

    idx_<ISIN>.json             {"dates": ["2024-01-02", ...]}
    <ISIN>/<YYYY-MM-DD>.json    one PriceRecord
    health.json                 HealthStatus
    health_alert_needed.flag    AlertFlag, present only while stale

The layout is what downstream tooling and the alerting workflow watch, so
file names are part of the external interface.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from navkeep.core.exceptions import StorageError
from navkeep.core.models import AlertFlag, HealthStatus, PriceRecord

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

HEALTH_FILE = "health.json"
ALERT_FILE = "health_alert_needed.flag"


class JsonFileStore:
    """Implementation of PriceHistoryStore over one JSON file per artifact.

    Parameters
    ----------
    data_dir : str
        Root directory. Created on ``initialize()`` if missing.
    """

    def __init__(self, data_dir: str) -> None:
        self._root = Path(data_dir)

    @property
    def root(self) -> Path:
        return self._root

    async def initialize(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create data directory: {e}",
                context={"operation": "initialize", "path": str(self._root)},
            ) from e

    async def close(self) -> None:
        pass

    # --- Paths ---

    def index_path(self, isin: str) -> Path:
        return self._root / f"idx_{isin}.json"

    def record_path(self, isin: str, day: date) -> Path:
        return self._root / isin / f"{day.isoformat()}.json"

    @property
    def health_path(self) -> Path:
        return self._root / HEALTH_FILE

    @property
    def alert_path(self) -> Path:
        return self._root / ALERT_FILE

    # --- Records ---

    async def get_record(self, isin: str, day: date) -> PriceRecord | None:
        return self._read_model(self.record_path(isin, day), PriceRecord)

    async def save_record(self, isin: str, record: PriceRecord) -> None:
        self._write_json(
            self.record_path(isin, record.date),
            record.model_dump(mode="json"),
            artifact="record",
        )

    async def delete_record(self, isin: str, day: date) -> bool:
        return self._unlink(self.record_path(isin, day), artifact="record")

    # --- Index ---

    async def get_index(self, isin: str) -> list[date]:
        path = self.index_path(isin)
        data = self._read_json(path)
        if not isinstance(data, dict):
            return []
        dates: list[date] = []
        for raw in data.get("dates") or []:
            try:
                dates.append(date.fromisoformat(str(raw)))
            except ValueError:
                logger.warning("Skipping malformed date %r in %s", raw, path)
        return dates

    async def save_index(self, isin: str, dates: list[date]) -> None:
        self._write_json(
            self.index_path(isin),
            {"dates": [d.isoformat() for d in dates]},
            artifact="index",
        )

    # --- Health / alert ---

    async def load_health(self) -> HealthStatus:
        status = self._read_model(self.health_path, HealthStatus)
        return status if status is not None else HealthStatus()

    async def save_health(self, status: HealthStatus) -> None:
        self._write_json(self.health_path, status.model_dump(mode="json"), artifact="health")

    async def get_alert(self) -> AlertFlag | None:
        return self._read_model(self.alert_path, AlertFlag)

    async def save_alert(self, flag: AlertFlag) -> None:
        self._write_json(self.alert_path, flag.model_dump(mode="json"), artifact="alert")

    async def delete_alert(self) -> bool:
        return self._unlink(self.alert_path, artifact="alert")

    # --- Helpers ---

    def _read_json(self, path: Path) -> Any:
        """Return parsed JSON, or None if the file is missing or unreadable."""
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cannot read %s, treating as absent: %s", path, e)
            return None

    def _read_model(self, path: Path, model: type[M]) -> M | None:
        data = self._read_json(path)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning("Invalid %s in %s, treating as absent: %s", model.__name__, path, e)
            return None

    def _write_json(self, path: Path, data: Any, artifact: str) -> None:
        """Write via a sibling temp file so readers never see a partial file."""
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageError(
                f"Failed to write {artifact}: {e}",
                context={"operation": "write", "artifact": artifact, "path": str(path)},
            ) from e

    def _unlink(self, path: Path, artifact: str) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(
                f"Failed to delete {artifact}: {e}",
                context={"operation": "delete", "artifact": artifact, "path": str(path)},
            ) from e
        return True
