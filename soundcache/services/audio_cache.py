"""Public entry point: resolve a resource key to a decoded buffer.

Three tiers are consulted in order:

    1. DecodedBufferCache   -- in-process LRU of decoded buffers
    2. persistent store     -- raw bytes + metadata side-record
    3. network              -- conditional GET via the fetch executor

Inline ``data:`` keys are decoded directly and never touch tiers 2 or 3.
Everything past the memory check runs inside the request coalescer, so
concurrent callers for one key share a single store read / fetch / decode.

# --- HOW A LOAD FLOWS ---------------------------------------------------
#
#   get_audio_buffer(decoder, url)
#     |-- memory hit ----------------------------------> buffer
#     |-- data: URL --> decode --> memory insert ------> buffer
#     '-- coalescer.run_or_join(url, _load)
#           open store -> read metadata -> evaluate_freshness
#             SERVE_FROM_STORE        -> store body (miss -> network)
#             REVALIDATE_CONDITIONAL  -> executor with validators
#             FETCH_UNCONDITIONAL     -> executor without validators
#           decode -> memory insert --------------------> buffer
# ------------------------------------------------------------------------
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import partial
from typing import Any

import structlog

from soundcache.interfaces.decoder_provider import IAudioDecoder
from soundcache.interfaces.store_provider import IPersistentStore
from soundcache.interfaces.transport_provider import INetworkTransport
from soundcache.models.events import LoadingCallbacks, now_ms
from soundcache.models.metadata import CacheMetadata, FreshnessDecision
from soundcache.providers.cache.memory_cache import DEFAULT_CAPACITY, DecodedBufferCache
from soundcache.services.coalescer import PendingOperation, RequestCoalescer
from soundcache.services.fetch_executor import ConditionalFetchExecutor, FetchResult
from soundcache.services.freshness import evaluate_freshness
from soundcache.services.notifier import EventDispatcher
from soundcache.services.store_adapter import PersistentStoreAdapter
from soundcache.utils.concurrency import AbortSignal
from soundcache.utils.data_url import is_data_url, parse_data_url
from soundcache.utils.errors import (
    AbortError,
    ConfigurationError,
    DecodeError,
    SoundCacheError,
    StoreError,
)

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_STORE_NAME = "audio-cache"
DEFAULT_EXPIRATION_SECONDS = 24 * 60 * 60


class AudioCache:
    """Three-tier cache of decoded audio buffers.

    One instance owns its buffer cache and pending-operation table; build it
    once (see :func:`soundcache.main.build_audio_cache`) and share it.

    Parameters
    ----------
    transport:
        Network transport used for fetches.
    store:
        Persistent store, or ``None`` to run without one.
    store_name:
        Name of the store partition to open.
    expiration_seconds:
        TTL fallback for resources that carry no validator.
    capacity:
        Maximum number of decoded buffers held in memory.
    clock:
        Returns the current time in epoch milliseconds; injectable for tests.
    """

    def __init__(
        self,
        transport: INetworkTransport,
        store: IPersistentStore | None = None,
        *,
        store_name: str = DEFAULT_STORE_NAME,
        expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        _check_expiration(expiration_seconds)
        self._transport = transport
        self._store = store
        self._store_name = store_name
        self._expiration_seconds = expiration_seconds
        self._clock = clock
        self._buffers = DecodedBufferCache(capacity)
        self._coalescer = RequestCoalescer()
        self._executor = ConditionalFetchExecutor(transport, clock=clock)

    # ------------------------------------------------------------------
    # Runtime configuration
    # ------------------------------------------------------------------

    @property
    def expiration_seconds(self) -> float:
        return self._expiration_seconds

    @property
    def capacity(self) -> int:
        return self._buffers.capacity

    @property
    def transport(self) -> INetworkTransport:
        return self._transport

    @property
    def store(self) -> IPersistentStore | None:
        return self._store

    @property
    def buffers(self) -> DecodedBufferCache:
        return self._buffers

    @property
    def coalescer(self) -> RequestCoalescer:
        return self._coalescer

    def set_cache_expiration_time(self, seconds: float) -> None:
        """Change the TTL fallback; applies to the next freshness decision."""
        _check_expiration(seconds)
        self._expiration_seconds = seconds
        logger.info("cache_expiration_updated", seconds=seconds)

    def set_buffer_cache_capacity(self, capacity: int) -> None:
        """Change how many decoded buffers are kept; shrinking evicts LRU first."""
        self._buffers.resize(capacity)
        logger.info("buffer_cache_capacity_updated", capacity=capacity)

    def clear_memory_cache(self) -> None:
        """Drop all decoded buffers.  In-flight loads are unaffected."""
        self._buffers.clear()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_audio_buffer(
        self,
        decoder: IAudioDecoder,
        url: str,
        signal: AbortSignal | None = None,
        callbacks: LoadingCallbacks | None = None,
    ) -> Any:
        """Return the decoded buffer for *url*.

        Parameters
        ----------
        decoder:
            Decoding service applied to the raw bytes.
        url:
            Resource URL or inline ``data:`` URL.
        signal:
            Aborts this caller's wait; other callers sharing the load are
            unaffected.
        callbacks:
            Optional observability hooks for this caller.

        Raises
        ------
        NetworkError, DecodeError, ConsistencyError
            Shared by every caller joined on the same load.
        AbortError
            Only for the caller whose *signal* fired.
        """
        caller_events = EventDispatcher.for_caller(callbacks)

        cached = self._buffers.get(url)
        if cached is not None:
            logger.debug("memory_cache_hit", url=_short(url))
            await caller_events.cache_hit(url, "memory")
            return cached

        if is_data_url(url):
            return await self._load_inline(decoder, url, caller_events)

        try:
            return await self._coalescer.run_or_join(
                url,
                partial(self._load, decoder, url),
                signal=signal,
                callbacks=callbacks,
            )
        except AbortError as exc:
            if signal is not None and signal.aborted:
                await caller_events.loading_error(url, exc)
            raise

    # ------------------------------------------------------------------
    # Load pipeline
    # ------------------------------------------------------------------

    async def _load_inline(
        self,
        decoder: IAudioDecoder,
        url: str,
        events: EventDispatcher,
    ) -> Any:
        try:
            payload = parse_data_url(url)
            buffer = await self._decode(decoder, url, payload)
        except SoundCacheError as exc:
            await events.loading_error(url, exc)
            raise
        self._buffers.set(url, buffer)
        return buffer

    async def _load(self, decoder: IAudioDecoder, url: str, operation: PendingOperation) -> Any:
        """Coalesced work: resolve bytes, decode, insert into memory."""
        events = operation.events
        started = time.monotonic()
        await events.loading_start(url)
        try:
            data = await self._resolve_bytes(url, operation.signal, events)
            buffer = await self._decode(decoder, url, data)
        except Exception as exc:
            logger.warning("load_failed", url=url, error=str(exc), error_type=type(exc).__name__)
            # Callers still attached to an abandoned load retry on a fresh one.
            if not (isinstance(exc, AbortError) and operation.signal.aborted):
                await events.loading_error(url, exc)
            raise

        self._buffers.set(url, buffer)
        duration_ms = (time.monotonic() - started) * 1000
        logger.info("load_complete", url=url, size=len(data), duration_ms=round(duration_ms, 1))
        await events.loading_complete(url, duration_ms, len(data))
        return buffer

    async def _resolve_bytes(
        self,
        url: str,
        signal: AbortSignal,
        events: EventDispatcher,
    ) -> bytes:
        store = await self._open_store(url, events)

        metadata: CacheMetadata | None = None
        read_failed = False
        if store is not None:
            try:
                metadata = await store.read_metadata(url)
            except StoreError as exc:
                logger.warning("store_read_failed", key=url, error=str(exc))
                await events.cache_error(url, exc, "read")
                read_failed = True

        decision = evaluate_freshness(
            metadata,
            now_ms=self._clock(),
            expiration_seconds=self._expiration_seconds,
        )
        logger.debug("freshness_decision", url=url, decision=decision.value)

        if decision is FreshnessDecision.SERVE_FROM_STORE:
            body, read_failed = await self._serve_from_store(url, store, events)
            if body is not None:
                return body
            if read_failed:
                # Store unusable: fall back to a plain fetch.
                await events.cache_miss(url, "store-error")
                result = await self._executor.fetch(url, store, signal=signal, events=events)
                return result.body
            # Metadata says fresh but the body is gone; ask with validators.
            await events.cache_miss(url, "not-found")
            result = await self._executor.fetch(
                url, store, previous=metadata, signal=signal, events=events
            )
            return result.body

        if decision is FreshnessDecision.REVALIDATE_CONDITIONAL:
            result = await self._executor.fetch(
                url, store, previous=metadata, signal=signal, events=events
            )
            await self._report_revalidation(url, result, events)
            return result.body

        if decision is FreshnessDecision.FETCH_UNCONDITIONAL:
            if read_failed:
                reason = "store-error"
            elif metadata is None:
                reason = "not-found"
            else:
                reason = "stale"
            await events.cache_miss(url, reason)
            result = await self._executor.fetch(url, store, signal=signal, events=events)
            return result.body

        raise AssertionError(f"Unhandled freshness decision: {decision!r}")

    async def _open_store(self, url: str, events: EventDispatcher) -> PersistentStoreAdapter | None:
        if self._store is None:
            return None
        try:
            handle = await self._store.open(self._store_name)
        except Exception as exc:
            logger.error("store_open_failed", store=self._store_name, error=str(exc))
            await events.cache_error(url, exc, "open")
            return None
        return PersistentStoreAdapter(handle, events)

    async def _serve_from_store(
        self,
        url: str,
        store: PersistentStoreAdapter | None,
        events: EventDispatcher,
    ) -> tuple[bytes | None, bool]:
        """Return ``(body, read_failed)`` for a fresh resource."""
        if store is None:
            return None, False
        try:
            body = await store.read_body(url)
        except StoreError as exc:
            logger.warning("store_read_failed", key=url, error=str(exc))
            await events.cache_error(url, exc, "read")
            return None, True
        if body is not None:
            logger.debug("store_cache_hit", url=url, size=len(body))
            await events.cache_hit(url, "store")
        return body, False

    async def _report_revalidation(
        self,
        url: str,
        result: FetchResult,
        events: EventDispatcher,
    ) -> None:
        if result.not_modified:
            await events.cache_hit(url, "store")
        else:
            await events.cache_miss(url, "stale")

    async def _decode(self, decoder: IAudioDecoder, url: str, data: bytes) -> Any:
        try:
            return await decoder.decode(data)
        except DecodeError:
            logger.error("decode_failed", url=_short(url), size=len(data))
            raise
        except Exception as exc:
            logger.error("decode_failed", url=_short(url), size=len(data), error=str(exc))
            raise DecodeError(
                message=f"Failed to decode audio data for {_short(url)}: {exc}",
                provider_name=decoder.get_provider_name(),
            ) from exc


def _check_expiration(seconds: float) -> None:
    if seconds < 0:
        raise ConfigurationError(f"Cache expiration must be non-negative, got {seconds}")


def _short(url: str) -> str:
    """Keep inline payloads out of log lines."""
    return url if len(url) <= 96 else url[:93] + "..."
