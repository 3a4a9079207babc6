"""Shared pytest fixtures for the soundcache test suite."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from soundcache.interfaces.decoder_provider import IAudioDecoder
from soundcache.interfaces.store_provider import IPersistentStore, IStoreHandle
from soundcache.interfaces.transport_provider import INetworkTransport, TransportResponse
from soundcache.models.events import LoadingCallbacks
from soundcache.models.metadata import CacheMetadata
from soundcache.providers.store.memory_store import MemoryStore, MemoryStoreHandle
from soundcache.services.audio_cache import AudioCache
from soundcache.services.store_adapter import metadata_key
from soundcache.utils.errors import NetworkError, StoreError

START_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@dataclass
class ScriptedResponse:
    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    chunk_size: int = 4
    # Request blocks until set (keeps a load in flight).
    hold: asyncio.Event | None = None
    # Body stream blocks before the first chunk until set.
    stall: asyncio.Event | None = None
    error: Exception | None = None


@dataclass
class RecordedRequest:
    url: str
    headers: dict[str, str]


class FakeTransport(INetworkTransport):
    """Transport answering from per-URL scripts, recording every request."""

    def __init__(self) -> None:
        self._scripts: dict[str, list[ScriptedResponse]] = {}
        self.requests: list[RecordedRequest] = []
        self.closed_responses = 0
        self.closed = False

    def add(
        self,
        url: str,
        status: int = 200,
        body: bytes = b"",
        headers: Mapping[str, str] | None = None,
        *,
        content_length: bool = True,
        **kwargs: Any,
    ) -> ScriptedResponse:
        all_headers = dict(headers or {})
        if content_length and body and status == 200:
            all_headers.setdefault("Content-Length", str(len(body)))
        script = ScriptedResponse(status=status, body=body, headers=all_headers, **kwargs)
        self._scripts.setdefault(url, []).append(script)
        return script

    def requests_for(self, url: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.url == url]

    async def request(self, url, headers=None, signal=None) -> TransportResponse:
        self.requests.append(RecordedRequest(url=url, headers=dict(headers or {})))
        scripts = self._scripts.get(url)
        if not scripts:
            raise AssertionError(f"Unexpected request for {url}")
        script = scripts.pop(0)
        if script.hold is not None:
            await script.hold.wait()
        if signal is not None:
            signal.raise_if_aborted()
        if script.error is not None:
            raise script.error

        async def close() -> None:
            self.closed_responses += 1

        return TransportResponse(
            status=script.status,
            status_text=_REASONS.get(script.status, ""),
            headers=script.headers,
            stream=_chunked(script),
            close=close,
        )

    async def aclose(self) -> None:
        self.closed = True

    def get_provider_name(self) -> str:
        return "fake"


_REASONS = {200: "OK", 304: "Not Modified", 404: "Not Found", 500: "Internal Server Error"}


async def _chunked(script: ScriptedResponse) -> AsyncIterator[bytes]:
    if script.stall is not None:
        await script.stall.wait()
    body = script.body
    for start in range(0, len(body), script.chunk_size):
        yield body[start : start + script.chunk_size]


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


def network_down(url: str) -> NetworkError:
    return NetworkError(status=0, status_text="ConnectError", message=f"Request to {url} failed")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class FlakyHandle(IStoreHandle):
    """MemoryStoreHandle wrapper with per-key failure injection."""

    def __init__(self, inner: MemoryStoreHandle) -> None:
        self.inner = inner
        self.fail_get: set[str] = set()
        self.fail_put: set[str] = set()
        self.fail_delete = False
        self.deleted: list[str] = []

    async def get(self, key: str) -> bytes | None:
        if key in self.fail_get:
            raise StoreError(f"get failed for {key}", provider_name="flaky")
        return await self.inner.get(key)

    async def put(self, key: str, body: bytes, headers: Mapping[str, str] | None = None) -> None:
        if key in self.fail_put:
            raise StoreError("QuotaExceededError", provider_name="flaky")
        await self.inner.put(key, body, headers)

    async def delete(self, key: str) -> bool:
        self.deleted.append(key)
        if self.fail_delete:
            raise StoreError(f"delete failed for {key}", provider_name="flaky")
        return await self.inner.delete(key)


class FlakyStore(IPersistentStore):
    def __init__(self) -> None:
        self.handle = FlakyHandle(MemoryStoreHandle("audio-cache"))
        self.fail_open = False
        self.open_calls = 0

    async def open(self, name: str) -> FlakyHandle:
        self.open_calls += 1
        if self.fail_open:
            raise StoreError("store unavailable", provider_name="flaky")
        return self.handle

    def get_provider_name(self) -> str:
        return "flaky"


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def flaky_store() -> FlakyStore:
    return FlakyStore()


async def seed_store(
    handle: IStoreHandle,
    url: str,
    body: bytes | None,
    *,
    timestamp: int,
    etag: str | None = None,
    last_modified: str | None = None,
    cache_control: str | None = None,
) -> CacheMetadata:
    """Write a body (optional) and its metadata record straight to a handle."""
    metadata = CacheMetadata(
        url=url,
        etag=etag,
        last_modified=last_modified,
        cache_control=cache_control,
        timestamp=timestamp,
    )
    if body is not None:
        await handle.put(url, body)
    await handle.put(metadata_key(url), metadata.to_json_bytes())
    return metadata


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------


class DecodedBuffer:
    """Stand-in for a decoded sample buffer; compared by identity."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    def __len__(self) -> int:
        return len(self.data)


class CountingDecoder(IAudioDecoder):
    def __init__(self) -> None:
        self.calls: list[bytes] = []
        self.fail_with: Exception | None = None
        self.hold: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    async def decode(self, data: bytes) -> DecodedBuffer:
        self.calls.append(data)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.hold is not None:
                await self.hold.wait()
            if self.fail_with is not None:
                raise self.fail_with
            return DecodedBuffer(data)
        finally:
            self.active -= 1

    def get_provider_name(self) -> str:
        return "counting"


@pytest.fixture()
def decoder() -> CountingDecoder:
    return CountingDecoder()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventRecorder:
    """Collects every event delivered to one LoadingCallbacks instance."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.callbacks = LoadingCallbacks(
            on_loading_start=self._hook("start"),
            on_loading_progress=self._hook("progress"),
            on_loading_complete=self._hook("complete"),
            on_loading_error=self._hook("error"),
            on_cache_hit=self._hook("hit"),
            on_cache_miss=self._hook("miss"),
            on_cache_error=self._hook("cache_error"),
        )

    def _hook(self, kind: str) -> Callable[[Any], None]:
        def record(event: Any) -> None:
            self.events.append((kind, event))

        return record

    def of(self, kind: str) -> list[Any]:
        return [event for k, event in self.events if k == kind]

    @property
    def kinds(self) -> list[str]:
        return [k for k, _ in self.events]


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()


# ---------------------------------------------------------------------------
# AudioCache
# ---------------------------------------------------------------------------


@pytest.fixture()
def audio_cache(transport: FakeTransport, store: MemoryStore, clock: FakeClock) -> AudioCache:
    return AudioCache(transport, store, clock=clock)


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until *predicate* holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
