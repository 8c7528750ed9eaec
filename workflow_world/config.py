from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .pagination import DEFAULT_PAGE_LIMIT
from .resolution import DEFAULT_RESOLVE_DATA, ResolveData

DEFAULT_CONFIG_PATH = "world.yaml"
DEFAULT_DATA_DIR = ".workflow-data"

BackendName = Literal["inmemory", "local", "sqlite", "postgres", "remote"]


class LocalConfig(BaseModel):
    """Configuration for the filesystem backend."""

    data_dir: str = DEFAULT_DATA_DIR


class SQLiteConfig(BaseModel):
    """Configuration for the SQLite backend."""

    path: str = os.path.join(DEFAULT_DATA_DIR, "world.db")


class PostgresConfig(BaseModel):
    """Configuration for the PostgreSQL backend."""

    dsn: Optional[str] = None


class RemoteConfig(BaseModel):
    """Configuration for the remote HTTP backend."""

    base_url: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 30.0
    headers: dict[str, str] = Field(default_factory=dict)


class WorldConfig(BaseModel):
    """Top-level configuration model."""

    model_config = ConfigDict(validate_assignment=True)

    backend: BackendName = "local"
    resolve_data: ResolveData = ResolveData(DEFAULT_RESOLVE_DATA)
    page_limit: int = DEFAULT_PAGE_LIMIT
    local: LocalConfig = Field(default_factory=LocalConfig)
    sqlite: SQLiteConfig = Field(default_factory=SQLiteConfig)
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)


def _apply_database_url(config: WorldConfig, database_url: str) -> None:
    if database_url.startswith("sqlite://"):
        config.sqlite.path = database_url.replace("sqlite://", "", 1)
    elif database_url.startswith(("postgres://", "postgresql://")):
        config.postgres.dsn = database_url
    else:
        raise ValueError(f"Unsupported database url: {database_url}")


def load_config(path: Optional[str] = None) -> WorldConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WORKFLOW_WORLD_CONFIG
            env variable or 'world.yaml' in the current directory.

    Environment variables override the file: ``WORKFLOW_TARGET_WORLD``,
    ``WORKFLOW_LOCAL_DATA_DIR``, ``WORKFLOW_DATABASE_URL``,
    ``WORKFLOW_REMOTE_URL`` and ``WORKFLOW_REMOTE_TOKEN``.
    """

    config_path = path or os.getenv("WORKFLOW_WORLD_CONFIG", DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WorldConfig(**data)
    else:
        config = WorldConfig()

    env_backend = os.getenv("WORKFLOW_TARGET_WORLD")
    if env_backend:
        config.backend = env_backend.lower()
    env_data_dir = os.getenv("WORKFLOW_LOCAL_DATA_DIR")
    if env_data_dir:
        config.local.data_dir = env_data_dir
    env_db_url = os.getenv("WORKFLOW_DATABASE_URL")
    if env_db_url:
        _apply_database_url(config, env_db_url)
    env_remote_url = os.getenv("WORKFLOW_REMOTE_URL")
    if env_remote_url:
        config.remote.base_url = env_remote_url
    env_remote_token = os.getenv("WORKFLOW_REMOTE_TOKEN")
    if env_remote_token:
        config.remote.token = env_remote_token
    return config


__all__ = [
    "BackendName",
    "LocalConfig",
    "SQLiteConfig",
    "PostgresConfig",
    "RemoteConfig",
    "WorldConfig",
    "load_config",
]
