"""Conditional network fetches with progress streaming and recovery.

Given a resource URL and, optionally, the validators on record, the
executor issues one GET and interprets the outcome:

    200 Full content   -> stream the body (emitting progress), store body +
                          fresh metadata as a pair, return the bytes
    304 Not Modified   -> return the stored body and refresh only the
                          metadata timestamp (and Cache-Control if sent)
    304, no body       -> cache inconsistency: warn, refetch without
                          validators; a failed refetch is a ConsistencyError
    anything else      -> NetworkError(status, status_text)

A store write failure never fails the fetch: the pair is rolled back and the
freshly received bytes are still returned.  Store writes start only after the
body is fully received and are not interrupted by the abort signal.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import structlog

from soundcache.interfaces.transport_provider import INetworkTransport, TransportResponse
from soundcache.models.events import now_ms
from soundcache.models.metadata import CacheMetadata
from soundcache.services.notifier import EventDispatcher
from soundcache.services.store_adapter import PersistentStoreAdapter
from soundcache.utils.concurrency import AbortSignal, race
from soundcache.utils.errors import ConsistencyError, NetworkError, StoreError

logger = structlog.get_logger(logger_name=__name__)

HTTP_OK = 200
HTTP_NOT_MODIFIED = 304

# Initial capacity of the growable buffer used when Content-Length is unknown.
_INITIAL_BUFFER_SIZE = 64 * 1024

# Response headers kept alongside the stored body.
_CONTENT_HEADERS = ("content-type", "content-length", "etag", "last-modified", "cache-control", "date")


@dataclass(frozen=True)
class FetchResult:
    """Bytes obtained by the executor and how they were obtained."""

    body: bytes
    not_modified: bool = False  # True when a 304 confirmed the stored body
    recovered: bool = False     # True when an inconsistency forced a refetch


class ConditionalFetchExecutor:
    """Issues validator-aware requests through an :class:`INetworkTransport`.

    Parameters
    ----------
    transport:
        The network transport.
    clock:
        Returns the current time in epoch milliseconds; injectable for tests.
    """

    def __init__(
        self,
        transport: INetworkTransport,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._transport = transport
        self._clock = clock

    async def fetch(
        self,
        url: str,
        store: PersistentStoreAdapter | None,
        *,
        previous: CacheMetadata | None = None,
        signal: AbortSignal | None = None,
        events: EventDispatcher | None = None,
    ) -> FetchResult:
        """Fetch *url*, revalidating against *previous* when it has validators.

        Parameters
        ----------
        url:
            Resource URL (also the store key).
        store:
            Store adapter, or ``None`` to run network-only.
        previous:
            Metadata on record; its ``etag`` / ``last_modified`` become
            ``If-None-Match`` / ``If-Modified-Since``.
        signal:
            Abort signal for the network stage.
        events:
            Receives progress notifications.

        Raises
        ------
        NetworkError
            For statuses other than 200/304, or transport failure.
        ConsistencyError
            When a 304 had no stored body and the recovery fetch failed.
        AbortError
            When *signal* fires before the body is fully received.
        """
        events = events or EventDispatcher()
        headers = _conditional_headers(previous)
        response = await self._request(url, headers, signal)

        if response.status == HTTP_NOT_MODIFIED:
            await response.aclose()
            body, read_failed = await self._stored_body(url, store, events)
            if body is not None:
                await self._confirm_unchanged(url, store, previous, response)
                return FetchResult(body=body, not_modified=True)
            return await self._recover(url, store, signal, events, read_failed=read_failed)

        if response.status == HTTP_OK:
            body = await self._receive_full(url, response, store, signal, events)
            return FetchResult(body=body)

        await response.aclose()
        raise NetworkError(
            status=response.status,
            status_text=response.status_text,
            message=f"Failed to fetch {url}: HTTP {response.status} {response.status_text}".rstrip(),
        )

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    async def _request(
        self,
        url: str,
        headers: dict[str, str],
        signal: AbortSignal | None,
    ) -> TransportResponse:
        if signal is not None:
            signal.raise_if_aborted()
        logger.debug(
            "network_request",
            url=url,
            conditional=bool(headers),
            has_etag="If-None-Match" in headers,
            has_last_modified="If-Modified-Since" in headers,
        )
        response = await self._transport.request(url, headers=headers, signal=signal)
        logger.debug(
            "network_response",
            url=url,
            status=response.status,
            status_text=response.status_text,
            etag=response.get_header("etag"),
            last_modified=response.get_header("last-modified"),
            cache_control=response.get_header("cache-control"),
        )
        return response

    async def _stored_body(
        self,
        url: str,
        store: PersistentStoreAdapter | None,
        events: EventDispatcher,
    ) -> tuple[bytes | None, bool]:
        """Return ``(body, read_failed)`` for the body confirmed by a 304."""
        if store is None:
            return None, False
        try:
            return await store.read_body(url), False
        except StoreError as exc:
            logger.warning("store_read_failed", key=url, error=str(exc))
            await events.cache_error(url, exc, "read")
            return None, True

    async def _confirm_unchanged(
        self,
        url: str,
        store: PersistentStoreAdapter | None,
        previous: CacheMetadata | None,
        response: TransportResponse,
    ) -> None:
        """Refresh the timestamp (and Cache-Control if sent) after a 304."""
        if store is None:
            return
        update: dict[str, object] = {"timestamp": self._clock()}
        cache_control = response.get_header("cache-control")
        if cache_control:
            update["cache_control"] = cache_control
        if previous is None:
            metadata = CacheMetadata(url=url, **update)
        else:
            metadata = previous.model_copy(update=update)
        await store.replace_metadata(url, metadata)

    async def _recover(
        self,
        url: str,
        store: PersistentStoreAdapter | None,
        signal: AbortSignal | None,
        events: EventDispatcher,
        *,
        read_failed: bool = False,
    ) -> FetchResult:
        if read_failed:
            logger.info("refetch_after_store_read_failure", url=url)
        else:
            logger.warning(
                "cache_inconsistency",
                url=url,
                detail="304 response but no stored body; refetching without validators",
            )
        response = await self._request(url, {}, signal)
        if response.status != HTTP_OK:
            await response.aclose()
            raise ConsistencyError(status=response.status, status_text=response.status_text)
        body = await self._receive_full(url, response, store, signal, events)
        return FetchResult(body=body, recovered=True)

    async def _receive_full(
        self,
        url: str,
        response: TransportResponse,
        store: PersistentStoreAdapter | None,
        signal: AbortSignal | None,
        events: EventDispatcher,
    ) -> bytes:
        body = await self._collect(url, response, signal, events)
        if signal is not None:
            signal.raise_if_aborted()

        if store is not None:
            metadata = CacheMetadata(
                url=url,
                etag=response.get_header("etag") or None,
                last_modified=response.get_header("last-modified") or None,
                cache_control=response.get_header("cache-control") or None,
                timestamp=self._clock(),
            )
            content_headers = {
                name: value
                for name in _CONTENT_HEADERS
                if (value := response.get_header(name)) is not None
            }
            await store.write_pair(url, body, metadata, content_headers)
        return body

    async def _collect(
        self,
        url: str,
        response: TransportResponse,
        signal: AbortSignal | None,
        events: EventDispatcher,
    ) -> bytes:
        """Drain the body stream, emitting one progress event per chunk.

        With a known length the bytes land in an exact-size buffer; otherwise
        the buffer doubles as needed and is trimmed at the end.
        """
        total = _content_length(response.get_header("content-length"))
        buffer = bytearray(total if total else _INITIAL_BUFFER_SIZE)
        loaded = 0
        stream = response.iter_bytes()
        try:
            while True:
                chunk = await race(_next_chunk(stream), signal)
                if chunk is None:
                    break
                if not chunk:
                    continue
                end = loaded + len(chunk)
                if end > len(buffer):
                    # Unknown length, or the server sent more than announced.
                    size = max(len(buffer), 1)
                    while size < end:
                        size *= 2
                    buffer.extend(bytes(size - len(buffer)))
                buffer[loaded:end] = chunk
                loaded = end
                await events.loading_progress(url, loaded, total)
        finally:
            await response.aclose()

        if total and loaded != total:
            logger.warning("content_length_mismatch", url=url, expected=total, received=loaded)
        return bytes(memoryview(buffer)[:loaded])


def _conditional_headers(previous: CacheMetadata | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if previous is None:
        return headers
    if previous.etag:
        headers["If-None-Match"] = previous.etag
    if previous.last_modified:
        headers["If-Modified-Since"] = previous.last_modified
    return headers


def _content_length(value: str | None) -> int | None:
    if value is None:
        return None
    value = value.strip()
    if not value.isascii() or not value.isdigit():
        return None
    length = int(value)
    return length if length > 0 else None


async def _next_chunk(stream: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None
