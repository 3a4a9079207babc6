"""Dict-backed persistent store.

Not persistent across processes; used for ``store_backend="memory"`` and as
the default store in tests.  Handles opened with the same name share state.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from soundcache.interfaces.store_provider import IPersistentStore, IStoreHandle

logger = structlog.get_logger(logger_name=__name__)


class MemoryStoreHandle(IStoreHandle):
    """One named partition of a :class:`MemoryStore`."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._entries: dict[str, tuple[bytes, dict[str, str]]] = {}

    @property
    def name(self) -> str:
        return self._name

    def keys(self) -> list[str]:
        return list(self._entries)

    def headers_for(self, key: str) -> dict[str, str] | None:
        entry = self._entries.get(key)
        return dict(entry[1]) if entry else None

    async def get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    async def put(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._entries[key] = (bytes(body), dict(headers or {}))

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None


class MemoryStore(IPersistentStore):
    """In-memory :class:`IPersistentStore`."""

    def __init__(self) -> None:
        self._handles: dict[str, MemoryStoreHandle] = {}

    async def open(self, name: str) -> MemoryStoreHandle:
        handle = self._handles.get(name)
        if handle is None:
            handle = MemoryStoreHandle(name)
            self._handles[name] = handle
            logger.debug("memory_store_opened", name=name)
        return handle

    def get_provider_name(self) -> str:
        return "memory"
