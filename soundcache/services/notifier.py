"""Callback fan-out for loading and cache notifications.

An :class:`EventDispatcher` wraps the live list of callback registrations
attached to one load.  Emitting an event calls the matching hook on every
registration with the same event instance, so joined callers see identical
payloads.  Because the list is live, a caller that joins mid-flight receives
every event emitted after it attached.

Callbacks may be sync or async.  Sync callbacks run inline.  A coroutine
returned by an async callback runs as its own task, so a slow or hung
callback never holds up the shared load or the other callers.  A callback
that raises is logged and skipped; it never affects the load or the other
callbacks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Sequence
from typing import Any

import structlog

from soundcache.models.events import (
    CacheErrorEvent,
    CacheHitEvent,
    CacheMissEvent,
    LoadingCallbacks,
    LoadingCompleteEvent,
    LoadingErrorEvent,
    LoadingEvent,
    LoadingProgressEvent,
    LoadingStartEvent,
)
from soundcache.utils.errors import classify_error

logger = structlog.get_logger(logger_name=__name__)

# Strong references to running async callbacks.
_running: set[asyncio.Task[None]] = set()


class EventDispatcher:
    """Delivers events to a sequence of :class:`LoadingCallbacks`.

    Parameters
    ----------
    registrations:
        The callback registrations to notify.  The sequence is read on every
        emit, so appending to it later is picked up.
    """

    def __init__(self, registrations: Sequence[LoadingCallbacks] = ()) -> None:
        self._registrations = registrations
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_callbacks(self) -> int:
        """Number of async callbacks still running."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every async callback scheduled so far."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    @classmethod
    def for_caller(cls, callbacks: LoadingCallbacks | None) -> EventDispatcher:
        """Dispatcher addressing a single caller (or nobody)."""
        return cls([callbacks] if callbacks is not None else [])

    # ------------------------------------------------------------------
    # Typed emitters
    # ------------------------------------------------------------------

    async def loading_start(self, url: str) -> None:
        await self._emit("on_loading_start", LoadingStartEvent(url=url))

    async def loading_progress(self, url: str, loaded: int, total: int | None) -> None:
        if total:
            progress = min(1.0, loaded / total)
        else:
            total = None
            progress = -1.0
        await self._emit(
            "on_loading_progress",
            LoadingProgressEvent(url=url, loaded=loaded, total=total, progress=progress),
        )

    async def loading_complete(self, url: str, duration: float, size: int) -> None:
        await self._emit(
            "on_loading_complete",
            LoadingCompleteEvent(url=url, duration=duration, size=size),
        )

    async def loading_error(self, url: str, error: BaseException) -> None:
        await self._emit(
            "on_loading_error",
            LoadingErrorEvent(url=url, error=error, error_type=classify_error(error)),
        )

    async def cache_hit(self, url: str, cache_type: str) -> None:
        await self._emit("on_cache_hit", CacheHitEvent(url=url, cache_type=cache_type))

    async def cache_miss(self, url: str, reason: str) -> None:
        await self._emit("on_cache_miss", CacheMissEvent(url=url, reason=reason))

    async def cache_error(self, url: str, error: BaseException, operation: str) -> None:
        await self._emit(
            "on_cache_error",
            CacheErrorEvent(url=url, error=error, operation=operation),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _emit(self, hook: str, event: LoadingEvent) -> None:
        for registration in list(self._registrations):
            callback = getattr(registration, hook, None)
            if callback is None:
                continue
            try:
                result = callback(event)
            except Exception as exc:
                _log_callback_error(hook, event, callback, exc)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.create_task(_run_callback(hook, event, callback, result))
                _running.add(task)
                self._tasks.add(task)
                task.add_done_callback(_running.discard)
                task.add_done_callback(self._tasks.discard)


async def _run_callback(
    hook: str,
    event: LoadingEvent,
    callback: Callable[[LoadingEvent], Any],
    pending: Coroutine[Any, Any, Any],
) -> None:
    try:
        await pending
    except Exception as exc:
        _log_callback_error(hook, event, callback, exc)


def _log_callback_error(
    hook: str,
    event: LoadingEvent,
    callback: Callable[[LoadingEvent], Any],
    exc: Exception,
) -> None:
    logger.warning(
        "callback_error",
        hook=hook,
        url=event.url,
        error=str(exc),
        callback=getattr(callback, "__name__", repr(callback)),
    )
