"""PostgreSQL implementation of the World."""

from __future__ import annotations

import json
from typing import Any, Optional

import asyncpg

from ..errors import ConflictError
from ..pagination import DEFAULT_PAGE_LIMIT
from ..resolution import DEFAULT_RESOLVE_DATA, ResolveData
from .records import RecordStore, RecordWorld


class PostgresRecordStore(RecordStore):
    """Persist records as JSONB rows in PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS world_records (
                collection TEXT NOT NULL,
                key TEXT NOT NULL,
                record JSONB NOT NULL,
                PRIMARY KEY (collection, key)
            )
            """
        )

    # ------------------------------------------------------------------
    async def read(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT record FROM world_records WHERE collection = $1 AND key = $2",
                collection,
                key,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return json.loads(row["record"])

    async def insert(self, collection: str, key: str, record: dict[str, Any]) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO world_records (collection, key, record) VALUES ($1, $2, $3::jsonb)",
                collection,
                key,
                json.dumps(record),
            )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(f"{collection}/{key} already exists") from exc
        finally:
            await conn.close()

    async def write(self, collection: str, key: str, record: dict[str, Any]) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO world_records (collection, key, record) VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (collection, key) DO UPDATE SET record = EXCLUDED.record
                """,
                collection,
                key,
                json.dumps(record),
            )
        finally:
            await conn.close()

    async def delete(self, collection: str, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM world_records WHERE collection = $1 AND key = $2",
                collection,
                key,
            )
        finally:
            await conn.close()

    async def keys(self, collection: str, prefix: str = "") -> list[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT key FROM world_records WHERE collection = $1 "
                "AND left(key, char_length($2::text)) = $2::text ORDER BY key",
                collection,
                prefix,
            )
        finally:
            await conn.close()
        return [r["key"] for r in rows]

    async def scan(self, collection: str, prefix: str = "") -> list[dict[str, Any]]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT record FROM world_records WHERE collection = $1 "
                "AND left(key, char_length($2::text)) = $2::text ORDER BY key",
                collection,
                prefix,
            )
        finally:
            await conn.close()
        return [json.loads(r["record"]) for r in rows]


class PostgresWorld(RecordWorld):
    def __init__(
        self,
        dsn: str,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        super().__init__(PostgresRecordStore(dsn), resolve_data, page_limit)


__all__ = ["PostgresRecordStore", "PostgresWorld"]
