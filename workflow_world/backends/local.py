"""Filesystem implementation of the World.

Each record lives in its own JSON file::

    {data_dir}/runs/{runId}.json
    {data_dir}/steps/{runId}-{stepId}.json
    {data_dir}/events/{runId}-{eventId}.json
    {data_dir}/hooks/{hookId}.json

Files are written to a temporary sibling and renamed into place, so a reader
sees either the previous or the new complete record. There is no lock across
files: updating a run and its steps together is not atomic.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Optional

from ..errors import ConflictError, SerializationError, ValidationError
from ..pagination import DEFAULT_PAGE_LIMIT
from ..resolution import DEFAULT_RESOLVE_DATA, ResolveData
from .records import RecordStore, RecordWorld

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class FileSystemRecordStore(RecordStore):
    """Persist records as JSON files under ``data_dir``."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    # ------------------------------------------------------------------
    # Paths
    def _dir(self, collection: str) -> Path:
        return self.data_dir / collection

    def _path(self, collection: str, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValidationError(f"Invalid record id: {key!r}", field="id")
        return self._dir(collection) / f"{key}{RECORD_SUFFIX}"

    def _temp_path(self, path: Path) -> Path:
        return path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")

    # ------------------------------------------------------------------
    # Blocking helpers, run in a worker thread
    def _read(self, path: Path) -> Optional[dict[str, Any]]:
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            raise SerializationError(f"Record file {path} is not valid JSON") from exc

    def _write_temp(self, path: Path, record: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._temp_path(path)
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        return tmp

    def _replace(self, path: Path, record: dict[str, Any]) -> None:
        tmp = self._write_temp(path, record)
        try:
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

    def _link_new(self, path: Path, record: dict[str, Any]) -> None:
        tmp = self._write_temp(path, record)
        try:
            os.link(tmp, path)
        except FileExistsError as exc:
            raise ConflictError(f"{path.parent.name}/{path.stem} already exists") from exc
        finally:
            tmp.unlink(missing_ok=True)

    def _list_keys(self, directory: Path, prefix: str) -> list[str]:
        if not directory.is_dir():
            return []
        return sorted(
            entry.name[: -len(RECORD_SUFFIX)]
            for entry in os.scandir(directory)
            if entry.is_file()
            and entry.name.endswith(RECORD_SUFFIX)
            and entry.name.startswith(prefix)
        )

    # ------------------------------------------------------------------
    # RecordStore API
    async def read(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self._read, self._path(collection, key))

    async def insert(self, collection: str, key: str, record: dict[str, Any]) -> None:
        path = self._path(collection, key)
        await asyncio.to_thread(self._link_new, path, record)
        logger.debug(f"Wrote new record {path}")

    async def write(self, collection: str, key: str, record: dict[str, Any]) -> None:
        path = self._path(collection, key)
        await asyncio.to_thread(self._replace, path, record)
        logger.debug(f"Replaced record {path}")

    async def delete(self, collection: str, key: str) -> None:
        path = self._path(collection, key)
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def keys(self, collection: str, prefix: str = "") -> list[str]:
        return await asyncio.to_thread(self._list_keys, self._dir(collection), prefix)


class LocalWorld(RecordWorld):
    def __init__(
        self,
        data_dir: str | Path,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        super().__init__(FileSystemRecordStore(data_dir), resolve_data, page_limit)


__all__ = ["FileSystemRecordStore", "LocalWorld", "RECORD_SUFFIX"]
