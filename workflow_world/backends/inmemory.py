"""In-memory implementation of the World."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any, Dict, Optional

from ..errors import ConflictError
from ..pagination import DEFAULT_PAGE_LIMIT
from ..resolution import DEFAULT_RESOLVE_DATA, ResolveData
from .records import RecordStore, RecordWorld


class InMemoryRecordStore(RecordStore):
    """Store records in local memory.

    Useful for tests or when no backend is configured. Data is not persisted
    across process restarts. Records are copied on the way in and out so
    callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def read(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            record = self._collections[collection].get(key)
        return copy.deepcopy(record)

    async def insert(self, collection: str, key: str, record: dict[str, Any]) -> None:
        async with self._lock:
            if key in self._collections[collection]:
                raise ConflictError(f"{collection}/{key} already exists")
            self._collections[collection][key] = copy.deepcopy(record)

    async def write(self, collection: str, key: str, record: dict[str, Any]) -> None:
        async with self._lock:
            self._collections[collection][key] = copy.deepcopy(record)

    async def delete(self, collection: str, key: str) -> None:
        async with self._lock:
            self._collections[collection].pop(key, None)

    async def keys(self, collection: str, prefix: str = "") -> list[str]:
        async with self._lock:
            return [key for key in self._collections[collection] if key.startswith(prefix)]


class InMemoryWorld(RecordWorld):
    def __init__(
        self,
        resolve_data: ResolveData | str = DEFAULT_RESOLVE_DATA,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        super().__init__(InMemoryRecordStore(), resolve_data, page_limit)


__all__ = ["InMemoryRecordStore", "InMemoryWorld"]
