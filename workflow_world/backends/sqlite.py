"""SQLite implementation of the World."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from ..errors import ConflictError, SerializationError
from ..pagination import DEFAULT_PAGE_LIMIT
from ..resolution import DEFAULT_RESOLVE_DATA, ResolveData
from .records import RecordStore, RecordWorld


class SQLiteRecordStore(RecordStore):
    """Persist records as JSON text in a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS world_records (
                    collection TEXT NOT NULL,
                    key TEXT NOT NULL,
                    record TEXT NOT NULL,
                    PRIMARY KEY (collection, key)
                )
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            try:
                self._conn.execute(query, params)
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ConflictError(f"{params[0]}/{params[1]} already exists") from exc

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(query, params).fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(query, params).fetchall()

    @staticmethod
    def _decode(row: sqlite3.Row) -> dict[str, Any]:
        try:
            return json.loads(row["record"])
        except json.JSONDecodeError as exc:
            raise SerializationError(
                f"Record {row['collection']}/{row['key']} is not valid JSON"
            ) from exc

    # ------------------------------------------------------------------
    # RecordStore API
    async def read(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT collection, key, record FROM world_records WHERE collection = ? AND key = ?",
            collection,
            key,
        )
        if not row:
            return None
        return self._decode(row)

    async def insert(self, collection: str, key: str, record: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO world_records (collection, key, record) VALUES (?, ?, ?)",
            collection,
            key,
            json.dumps(record),
        )

    async def write(self, collection: str, key: str, record: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO world_records (collection, key, record) VALUES (?, ?, ?)
            ON CONFLICT (collection, key) DO UPDATE SET record = excluded.record
            """,
            collection,
            key,
            json.dumps(record),
        )

    async def delete(self, collection: str, key: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM world_records WHERE collection = ? AND key = ?",
            collection,
            key,
        )

    async def keys(self, collection: str, prefix: str = "") -> list[str]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT key FROM world_records WHERE collection = ? AND substr(key, 1, ?) = ? ORDER BY key",
            collection,
            len(prefix),
            prefix,
        )
        return [r["key"] for r in rows]

    async def scan(self, collection: str, prefix: str = "") -> list[dict[str, Any]]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT collection, key, record FROM world_records WHERE collection = ? AND substr(key, 1, ?) = ? ORDER BY key",
            collection,
            len(prefix),
            prefix,
        )
        return [self._decode(r) for r in rows]

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


class SQLiteWorld(RecordWorld):
    def __init__(
        self,
        db_path: str | Path,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        super().__init__(SQLiteRecordStore(db_path), resolve_data, page_limit)


__all__ = ["SQLiteRecordStore", "SQLiteWorld"]
