"""SQLite store backed by aiosqlite."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import ClassVar

import aiosqlite
from pydantic import ValidationError

from navkeep.core.exceptions import StorageError
from navkeep.core.models import AlertFlag, HealthStatus, PriceRecord

logger = logging.getLogger(__name__)


class SqliteStore:
    """SQLite implementation of PriceHistoryStore.

    Uses aiosqlite for async access, WAL mode, and a version-tracked
    migration system. The health status and alert flag are stored as JSON
    documents in single-row tables.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS price_records (
                    isin TEXT NOT NULL,
                    date TEXT NOT NULL,
                    close REAL NOT NULL,
                    source TEXT NOT NULL,
                    observed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    previous_source TEXT,
                    previous_close REAL,
                    PRIMARY KEY (isin, date)
                )""",
                """CREATE TABLE IF NOT EXISTS date_index (
                    isin TEXT PRIMARY KEY,
                    dates_json TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS documents (
                    name TEXT PRIMARY KEY,
                    payload_json TEXT NOT NULL
                )""",
                "CREATE INDEX IF NOT EXISTS idx_records_isin ON price_records(isin)",
            ],
        ),
    }

    def __init__(self, db_path: str) -> None:
        self._path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Records ---

    async def get_record(self, isin: str, day: date) -> PriceRecord | None:
        try:
            async with self._db.execute(
                "SELECT * FROM price_records WHERE isin = ? AND date = ?",
                (isin, day.isoformat()),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.warning("Cannot read record %s %s: %s", isin, day, e)
            return None
        if row is None:
            return None
        try:
            return self._row_to_record(row)
        except (ValidationError, ValueError) as e:
            logger.warning("Invalid record %s %s, treating as absent: %s", isin, day, e)
            return None

    async def save_record(self, isin: str, record: PriceRecord) -> None:
        await self._write(
            """INSERT OR REPLACE INTO price_records
               (isin, date, close, source, observed_at, created_at, updated_at,
                previous_source, previous_close)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                isin,
                record.date.isoformat(),
                record.close,
                record.source,
                record.observed_at.isoformat() if record.observed_at else None,
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
                record.previous_source,
                record.previous_close,
            ),
            artifact="record",
        )

    async def delete_record(self, isin: str, day: date) -> bool:
        cursor = await self._write(
            "DELETE FROM price_records WHERE isin = ? AND date = ?",
            (isin, day.isoformat()),
            artifact="record",
            operation="delete",
        )
        return cursor.rowcount > 0

    # --- Index ---

    async def get_index(self, isin: str) -> list[date]:
        payload = await self._read_json(
            "SELECT dates_json FROM date_index WHERE isin = ?", (isin,), f"index {isin}"
        )
        if not isinstance(payload, list):
            return []
        dates: list[date] = []
        for raw in payload:
            try:
                dates.append(date.fromisoformat(str(raw)))
            except ValueError:
                logger.warning("Skipping malformed date %r in index %s", raw, isin)
        return dates

    async def save_index(self, isin: str, dates: list[date]) -> None:
        await self._write(
            "INSERT OR REPLACE INTO date_index (isin, dates_json) VALUES (?, ?)",
            (isin, json.dumps([d.isoformat() for d in dates])),
            artifact="index",
        )

    # --- Health / alert ---

    async def load_health(self) -> HealthStatus:
        payload = await self._read_json(
            "SELECT payload_json FROM documents WHERE name = ?", ("health",), "health"
        )
        if payload is None:
            return HealthStatus()
        try:
            return HealthStatus.model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid health status, using default: %s", e)
            return HealthStatus()

    async def save_health(self, status: HealthStatus) -> None:
        await self._save_document("health", status.model_dump_json())

    async def get_alert(self) -> AlertFlag | None:
        payload = await self._read_json(
            "SELECT payload_json FROM documents WHERE name = ?", ("alert",), "alert"
        )
        if payload is None:
            return None
        try:
            return AlertFlag.model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid alert flag, treating as absent: %s", e)
            return None

    async def save_alert(self, flag: AlertFlag) -> None:
        await self._save_document("alert", flag.model_dump_json())

    async def delete_alert(self) -> bool:
        cursor = await self._write(
            "DELETE FROM documents WHERE name = ?",
            ("alert",),
            artifact="alert",
            operation="delete",
        )
        return cursor.rowcount > 0

    # --- Helpers ---

    async def _save_document(self, name: str, payload: str) -> None:
        await self._write(
            "INSERT OR REPLACE INTO documents (name, payload_json) VALUES (?, ?)",
            (name, payload),
            artifact=name,
        )

    async def _read_json(self, sql: str, params: tuple, what: str):
        try:
            async with self._db.execute(sql, params) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.warning("Cannot read %s: %s", what, e)
            return None
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            logger.warning("Corrupt %s payload, treating as absent: %s", what, e)
            return None

    async def _write(
        self,
        sql: str,
        params: tuple,
        artifact: str,
        operation: str = "write",
    ) -> aiosqlite.Cursor:
        try:
            cursor = await self._db.execute(sql, params)
            await self._db.commit()
            return cursor
        except Exception as e:
            raise StorageError(
                f"Failed to {operation} {artifact}: {e}",
                context={"operation": operation, "artifact": artifact},
            ) from e

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> PriceRecord:
        return PriceRecord(
            date=date.fromisoformat(row["date"]),
            close=row["close"],
            source=row["source"],
            observed_at=(
                datetime.fromisoformat(row["observed_at"]) if row["observed_at"] else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            previous_source=row["previous_source"],
            previous_close=row["previous_close"],
        )
