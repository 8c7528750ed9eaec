"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from workflow_world.backends import InMemoryWorld, LocalWorld, SQLiteWorld, get_world
from workflow_world.backends.remote import RemoteWorld
from workflow_world.config import WorldConfig, load_config
from workflow_world.resolution import ResolveData


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in [
        "WORKFLOW_WORLD_CONFIG",
        "WORKFLOW_TARGET_WORLD",
        "WORKFLOW_LOCAL_DATA_DIR",
        "WORKFLOW_DATABASE_URL",
        "WORKFLOW_REMOTE_URL",
        "WORKFLOW_REMOTE_TOKEN",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "world.yaml"
    config_path.write_text(
        """
backend: sqlite
resolve_data: none
page_limit: 5
sqlite:
  path: /tmp/test-world.db
remote:
  base_url: https://api.example.com
  timeout: 5
"""
    )
    monkeypatch.setenv("WORKFLOW_WORLD_CONFIG", str(config_path))

    config = load_config()
    assert config.backend == "sqlite"
    assert config.resolve_data is ResolveData.NONE
    assert config.page_limit == 5
    assert config.sqlite.path == "/tmp/test-world.db"
    assert config.remote.base_url == "https://api.example.com"
    assert config.remote.timeout == 5.0


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.backend == "local"
    assert config.resolve_data is ResolveData.ALL
    assert config.page_limit == 20


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "world.yaml"
    config_path.write_text("backend: local\n")
    monkeypatch.setenv("WORKFLOW_TARGET_WORLD", "REMOTE")
    monkeypatch.setenv("WORKFLOW_LOCAL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("WORKFLOW_REMOTE_URL", "https://remote.test")
    monkeypatch.setenv("WORKFLOW_REMOTE_TOKEN", "tok")
    monkeypatch.setenv("WORKFLOW_DATABASE_URL", "postgresql://u:p@db/world")

    config = load_config(str(config_path))
    assert config.backend == "remote"
    assert config.local.data_dir == str(tmp_path / "data")
    assert config.remote.base_url == "https://remote.test"
    assert config.remote.token == "tok"
    assert config.postgres.dsn == "postgresql://u:p@db/world"


def test_sqlite_database_url(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKFLOW_DATABASE_URL", f"sqlite://{tmp_path}/w.db")
    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.sqlite.path == f"{tmp_path}/w.db"

    monkeypatch.setenv("WORKFLOW_DATABASE_URL", "mysql://nope")
    with pytest.raises(ValueError):
        load_config(str(tmp_path / "absent.yaml"))


def test_get_world_uses_config(tmp_path):
    config = WorldConfig(backend="sqlite", page_limit=3)
    config.sqlite.path = str(tmp_path / "w.db")
    world = get_world(config=config)
    assert isinstance(world, SQLiteWorld)

    config.local.data_dir = str(tmp_path / "data")
    assert isinstance(get_world("local", config), LocalWorld)
    assert isinstance(get_world("inmemory", config), InMemoryWorld)


def test_get_world_builds_fresh_instances():
    config = WorldConfig(backend="inmemory")
    assert get_world(config=config) is not get_world(config=config)


def test_get_world_env_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("WORKFLOW_TARGET_WORLD", "remote")
    config = WorldConfig()
    config.remote.base_url = "https://remote.test"
    world = get_world(config=config)
    assert isinstance(world, RemoteWorld)


def test_get_world_rejects_unknown_backend():
    with pytest.raises(ValueError):
        get_world("redis", WorldConfig())
    with pytest.raises(ValueError):
        get_world("postgres", WorldConfig())


def test_unknown_env_backend_fails_at_load(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKFLOW_TARGET_WORLD", "redis")
    with pytest.raises(PydanticValidationError):
        load_config(str(tmp_path / "absent.yaml"))
