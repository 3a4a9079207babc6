"""Pairwise body/metadata access on top of an :class:`IStoreHandle`.

A resource lives under two independent keys: the body under ``key`` and its
JSON metadata under ``key + ":meta"``.  This adapter keeps them consistent:

- writes go out as a pair; if either write fails both keys are deleted, so
  no half-written resource survives (the failure is logged and reported,
  never raised);
- a metadata record that fails to parse is treated as corruption: both keys
  are deleted and the read reports "nothing on record";
- read failures are raised as :class:`StoreError` so the caller can degrade
  to a network fetch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import structlog
from pydantic import ValidationError

from soundcache.interfaces.store_provider import IStoreHandle
from soundcache.models.metadata import CacheMetadata
from soundcache.services.notifier import EventDispatcher
from soundcache.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

META_SUFFIX = ":meta"
_METADATA_HEADERS = {"Content-Type": "application/json"}


def metadata_key(key: str) -> str:
    """Store key of the metadata side-record for *key*."""
    return key + META_SUFFIX


class PersistentStoreAdapter:
    """Reads and writes a resource's body and metadata as a unit.

    Parameters
    ----------
    handle:
        An opened store partition.
    events:
        Dispatcher used to report ``CacheError`` notifications.
    """

    def __init__(self, handle: IStoreHandle, events: EventDispatcher | None = None) -> None:
        self._handle = handle
        self._events = events or EventDispatcher()

    @property
    def handle(self) -> IStoreHandle:
        return self._handle

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_metadata(self, key: str) -> CacheMetadata | None:
        """Return the metadata on record for *key*, or ``None``.

        Raises
        ------
        StoreError
            If the store itself failed.  Corrupt records do not raise.
        """
        raw = await self._get(metadata_key(key))
        if raw is None:
            return None
        try:
            return CacheMetadata.from_json_bytes(raw)
        except ValidationError as exc:
            logger.warning("metadata_corrupt", key=key, error=str(exc))
            await self.delete_pair(key)
            await self._events.cache_error(key, exc, "metadata")
            return None

    async def read_body(self, key: str) -> bytes | None:
        """Return the stored body for *key*, or ``None``.

        Raises
        ------
        StoreError
            If the store itself failed.
        """
        return await self._get(key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write_pair(
        self,
        key: str,
        body: bytes,
        metadata: CacheMetadata,
        content_headers: Mapping[str, str] | None = None,
    ) -> bool:
        """Persist *body* and *metadata* together.

        Both writes run concurrently and are allowed to settle before the
        outcome is judged.  Returns ``True`` on success; on any failure both
        keys are deleted and ``False`` is returned.
        """
        results = await asyncio.gather(
            self._handle.put(key, body, content_headers),
            self._handle.put(metadata_key(key), metadata.to_json_bytes(), _METADATA_HEADERS),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            logger.debug("store_pair_written", key=key, size=len(body))
            return True

        error = failures[0]
        if not isinstance(error, Exception):
            raise error
        logger.warning("store_write_failed", key=key, error=str(error))
        await self.delete_pair(key)
        await self._events.cache_error(key, error, "write")
        return False

    async def replace_metadata(self, key: str, metadata: CacheMetadata) -> bool:
        """Rewrite only the metadata record (304 revalidation).

        On failure the whole pair is dropped so the next load refetches.
        """
        try:
            await self._handle.put(
                metadata_key(key), metadata.to_json_bytes(), _METADATA_HEADERS
            )
        except Exception as exc:
            logger.warning("store_write_failed", key=key, error=str(exc))
            await self.delete_pair(key)
            await self._events.cache_error(key, exc, "write")
            return False
        return True

    async def delete_pair(self, key: str) -> None:
        """Delete body and metadata.  Failures are logged, never raised."""
        for target in (key, metadata_key(key)):
            try:
                await self._handle.delete(target)
            except Exception as exc:
                logger.error("store_delete_failed", key=target, error=str(exc))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get(self, key: str) -> bytes | None:
        try:
            return await self._handle.get(key)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to read {key!r}: {exc}") from exc
