"""In-process decoded-buffer cache using cachetools.LRUCache.

Holds references to decoded buffers keyed by resource URL, bounded by entry
count.  Inserting a new key at capacity evicts the least-recently-used entry
first.  This cache is independent of the request coalescer: clearing or
evicting an entry never touches an in-flight load for the same key.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import LRUCache

from soundcache.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CAPACITY = 100


class DecodedBufferCache:
    """Recency-bounded map from resource key to decoded buffer.

    Parameters
    ----------
    capacity:
        Maximum number of buffers held before the least-recently-used one
        is evicted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        _check_capacity(capacity)
        self._cache: LRUCache[str, Any] = LRUCache(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return int(self._cache.maxsize)

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: str) -> Any | None:
        """Return the buffer for *key* and mark it most-recently-used."""
        return self._cache.get(key)

    def set(self, key: str, buffer: Any) -> None:
        """Insert or refresh *key*; evicts the LRU entry when full."""
        self._cache[key] = buffer

    def has(self, key: str) -> bool:
        """Membership check.  Does not count as an access."""
        return key in self._cache

    def clear(self) -> None:
        self._cache.clear()
        logger.debug("buffer_cache_cleared")

    def resize(self, capacity: int) -> None:
        """Change the capacity, keeping the most-recently-used entries.

        ``popitem`` on an LRUCache yields entries oldest-first, so draining
        the old cache and replaying into the new one preserves recency order.
        """
        _check_capacity(capacity)
        drained: list[tuple[str, Any]] = []
        while self._cache:
            drained.append(self._cache.popitem())
        resized: LRUCache[str, Any] = LRUCache(maxsize=capacity)
        for key, buffer in drained:
            resized[key] = buffer
        self._cache = resized
        logger.debug("buffer_cache_resized", capacity=capacity, entries=len(resized))


def _check_capacity(capacity: int) -> None:
    if capacity < 1:
        raise ConfigurationError(f"Buffer cache capacity must be positive, got {capacity}")
