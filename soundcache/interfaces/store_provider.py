"""Abstract base classes for the persistent byte store.

The cache never implements storage itself; it consumes a named key/value
store through these contracts.  A resource occupies two keys in a handle:
the body under ``key`` and its JSON metadata side-record under
``key + ":meta"``.  Implementations may use a dict, SQLite, a browser-style
Cache Storage bridge or anything else that can hold bytes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping


class IStoreHandle(ABC):
    """An opened, named partition of the persistent store.

    Implementations should raise
    :class:`~soundcache.utils.errors.StoreError` for storage failures
    (quota exceeded, database locked, unsupported environment).
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the bytes stored under *key*, or ``None`` if absent."""

    @abstractmethod
    async def put(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Store *body* under *key*, replacing any previous value.

        Parameters
        ----------
        key:
            The store key.
        body:
            Raw bytes to persist.
        headers:
            Content headers kept alongside the body (e.g. ``Content-Type``).
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if something was deleted."""


class IPersistentStore(ABC):
    """Factory for named store handles."""

    @abstractmethod
    async def open(self, name: str) -> IStoreHandle:
        """Open (creating if needed) the partition called *name*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""
