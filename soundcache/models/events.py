"""Observability payloads emitted while a resource loads.

Every event carries the resource ``url`` and an epoch-millisecond
``timestamp``.  Events are frozen Pydantic models; a single instance is
handed to every callback registration attached to a coalesced load, so all
joined callers observe identical progress sequences.

``LoadingCallbacks`` groups the optional hooks a caller passes in.  It is a
plain dataclass (not Pydantic) because it is never serialised.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: str
    timestamp: int = Field(default_factory=now_ms)


class LoadingStartEvent(_Event):
    """The coalesced load for ``url`` has begun."""


class LoadingProgressEvent(_Event):
    """A chunk of the response body arrived.

    ``progress`` is ``loaded / total`` in ``[0, 1]`` when the length header
    was present, otherwise ``total`` is ``None`` and ``progress`` is ``-1``.
    """

    loaded: int
    total: int | None = None
    progress: float


class LoadingCompleteEvent(_Event):
    duration: float  # milliseconds since LoadingStart
    size: int        # byte length of the payload that was decoded


class LoadingErrorEvent(_Event):
    error: BaseException
    error_type: str


class CacheHitEvent(_Event):
    cache_type: Literal["memory", "store"]


class CacheMissEvent(_Event):
    reason: Literal["not-found", "stale", "store-error"]


class CacheErrorEvent(_Event):
    error: BaseException
    operation: Literal["open", "read", "write", "metadata"]


LoadingEvent = Union[
    LoadingStartEvent,
    LoadingProgressEvent,
    LoadingCompleteEvent,
    LoadingErrorEvent,
    CacheHitEvent,
    CacheMissEvent,
    CacheErrorEvent,
]

# Callbacks may be plain functions or coroutine functions.
EventCallback = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True, eq=False)
class LoadingCallbacks:
    """Optional per-caller observability hooks.

    Identity matters: the coalescer detaches a caller by removing its own
    ``LoadingCallbacks`` instance, so equality is left as object identity.
    """

    on_loading_start: EventCallback | None = None
    on_loading_progress: EventCallback | None = None
    on_loading_complete: EventCallback | None = None
    on_loading_error: EventCallback | None = None
    on_cache_hit: EventCallback | None = None
    on_cache_miss: EventCallback | None = None
    on_cache_error: EventCallback | None = None
