"""Unit tests for Settings, load_config and the composition root."""

from __future__ import annotations

from pathlib import Path

import pytest

from soundcache.config.loader import _deep_merge, load_config
from soundcache.config.settings import Settings
from soundcache.main import build_audio_cache, build_store
from soundcache.providers.store.memory_store import MemoryStore
from soundcache.providers.store.sqlite_store import SQLiteStore
from soundcache.utils.errors import ConfigurationError

_ENV_VARS = (
    "CACHE_EXPIRATION_SECONDS",
    "BUFFER_CACHE_CAPACITY",
    "STORE_BACKEND",
    "STORE_NAME",
    "STORE_PATH",
    "HTTP_TIMEOUT",
    "USER_AGENT",
    "APP_ENV",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)


def _write_yaml(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.cache_expiration_seconds == 86400
        assert settings.buffer_cache_capacity == 100
        assert settings.store_backend == "sqlite"
        assert settings.store_name == "audio-cache"

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUFFER_CACHE_CAPACITY", "7")
        monkeypatch.setenv("STORE_BACKEND", "memory")
        settings = Settings()
        assert settings.buffer_cache_capacity == 7
        assert settings.store_backend == "memory"

    def test_rejects_invalid_capacity(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUFFER_CACHE_CAPACITY", "0")
        with pytest.raises(ValueError):
            Settings()


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"))
        assert config["cache"] == {"expiration_seconds": 86400, "capacity": 100}
        assert config["store"]["backend"] == "sqlite"
        assert config["logging"]["level"] == "INFO"

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "cache:\n  capacity: 12\nextra:\n  key: value\n")
        config = load_config(path)
        assert config["cache"]["capacity"] == 12
        assert config["cache"]["expiration_seconds"] == 86400
        assert config["extra"] == {"key": "value"}

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write_yaml(tmp_path, "cache:\n  capacity: 12\n  expiration_seconds: 60\n")
        monkeypatch.setenv("BUFFER_CACHE_CAPACITY", "3")
        config = load_config(path)
        assert config["cache"]["capacity"] == 3
        assert config["cache"]["expiration_seconds"] == 60

    def test_explicit_settings_override_yaml(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "store:\n  backend: sqlite\n")
        config = load_config(path, settings=Settings(store_backend="memory"))
        assert config["store"]["backend"] == "memory"

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        config = load_config(_write_yaml(tmp_path, ""))
        assert config["http"]["timeout"] == 30.0

    def test_deep_merge(self) -> None:
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        _deep_merge(base, {"a": {"y": 3}, "c": 4})
        assert base == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


class TestComposition:
    def test_build_store_memory(self) -> None:
        assert isinstance(build_store({"store": {"backend": "memory"}}), MemoryStore)

    def test_build_store_sqlite(self, tmp_path: Path) -> None:
        store = build_store({"store": {"backend": "sqlite", "path": str(tmp_path / "c.db")}})
        assert isinstance(store, SQLiteStore)

    def test_build_store_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            build_store({"store": {"backend": "redis"}})

    @pytest.mark.asyncio
    async def test_build_audio_cache_applies_config(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "cache:\n  capacity: 5\n  expiration_seconds: 10\n")
        cache = build_audio_cache(Settings(store_backend="memory"), config_path=path)
        try:
            assert cache.capacity == 5
            assert cache.expiration_seconds == 10
            assert isinstance(cache.store, MemoryStore)
        finally:
            await cache.transport.aclose()
