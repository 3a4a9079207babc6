"""soundcache composition root.

Wires the persistent store, network transport and AudioCache together from
``Settings`` and ``config/config.yaml``, and configures structured logging.
Callers that only need a ready cache use :func:`build_audio_cache`.
"""

from __future__ import annotations

from typing import Any

import structlog

from soundcache.config.loader import load_config
from soundcache.config.settings import Settings
from soundcache.interfaces.store_provider import IPersistentStore
from soundcache.providers.store.memory_store import MemoryStore
from soundcache.providers.store.sqlite_store import SQLiteStore
from soundcache.providers.transport.httpx_transport import HttpxTransport
from soundcache.services.audio_cache import AudioCache
from soundcache.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_CONFIG_PATH = "config/config.yaml"


def build_store(config: dict[str, Any]) -> IPersistentStore:
    """Return the persistent store selected by ``config["store"]["backend"]``."""
    store_config = config.get("store", {})
    backend = store_config.get("backend", "sqlite")
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlite":
        return SQLiteStore(db_path=store_config.get("path", "data/audio_cache.db"))
    raise ConfigurationError(f"Unknown store backend: {backend!r}")


def build_audio_cache(
    custom_settings: Settings | None = None,
    config_path: str = _DEFAULT_CONFIG_PATH,
) -> AudioCache:
    """Construct an :class:`AudioCache` with injected dependencies.

    Parameters
    ----------
    custom_settings:
        Application settings.  Read from the environment if not provided.
    config_path:
        YAML file layered under the environment settings.

    Returns
    -------
    AudioCache
        A cache owning an httpx transport and the configured store.  Close
        the transport with ``await cache.transport.aclose()`` when done.
    """
    config = load_config(config_path, settings=custom_settings)
    cache_config = config.get("cache", {})
    http_config = config.get("http", {})

    store = build_store(config)
    transport = HttpxTransport(
        timeout=float(http_config.get("timeout", 30.0)),
        user_agent=http_config.get("user_agent", "soundcache/0.1.0"),
    )
    audio_cache = AudioCache(
        transport,
        store,
        store_name=config.get("store", {}).get("name", "audio-cache"),
        expiration_seconds=float(cache_config.get("expiration_seconds", 86400)),
        capacity=int(cache_config.get("capacity", 100)),
    )
    logger.info(
        "audio_cache_built",
        store=store.get_provider_name(),
        transport=transport.get_provider_name(),
        capacity=audio_cache.capacity,
        expiration_seconds=audio_cache.expiration_seconds,
    )
    return audio_cache
