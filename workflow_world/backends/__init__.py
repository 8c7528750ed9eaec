from __future__ import annotations

import os
from typing import Optional

from ..config import WorldConfig, load_config
from ..contract import World
from .inmemory import InMemoryRecordStore, InMemoryWorld
from .local import FileSystemRecordStore, LocalWorld
from .records import RecordStore, RecordWorld
from .sqlite import SQLiteRecordStore, SQLiteWorld


def get_world(backend: Optional[str] = None, config: Optional[WorldConfig] = None) -> World:
    """Factory function to obtain a World.

    The backend is selected from ``backend``, the ``WORKFLOW_TARGET_WORLD``
    environment variable or the loaded configuration, in that order. Every
    call builds a new World; callers own it and should ``close()`` it.
    """

    config = config or load_config()
    backend = (backend or os.getenv("WORKFLOW_TARGET_WORLD") or config.backend).lower()

    if backend == "inmemory":
        return InMemoryWorld(config.resolve_data, config.page_limit)
    elif backend == "local":
        return LocalWorld(config.local.data_dir, config.resolve_data, config.page_limit)
    elif backend == "sqlite":
        return SQLiteWorld(config.sqlite.path, config.resolve_data, config.page_limit)
    elif backend == "postgres":
        from .postgres import PostgresWorld

        if not config.postgres.dsn:
            raise ValueError("Postgres backend requires a dsn")
        return PostgresWorld(config.postgres.dsn, config.resolve_data, config.page_limit)
    elif backend == "remote":
        from .remote import RemoteWorld

        return RemoteWorld(config.remote, config.resolve_data)
    else:
        raise ValueError(f"Unsupported world backend: {backend}")


__all__ = [
    "RecordStore",
    "RecordWorld",
    "InMemoryRecordStore",
    "InMemoryWorld",
    "FileSystemRecordStore",
    "LocalWorld",
    "SQLiteRecordStore",
    "SQLiteWorld",
    "get_world",
]
