"""soundcache domain models.

- metadata.py -- CacheMetadata side-record and the FreshnessDecision enum
- events.py   -- loading / cache observability payloads and LoadingCallbacks
"""

from __future__ import annotations

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
    now_ms,
)
from soundcache.models.metadata import CacheMetadata, FreshnessDecision

__all__ = [
    "CacheErrorEvent",
    "CacheHitEvent",
    "CacheMetadata",
    "CacheMissEvent",
    "FreshnessDecision",
    "LoadingCallbacks",
    "LoadingCompleteEvent",
    "LoadingErrorEvent",
    "LoadingEvent",
    "LoadingProgressEvent",
    "LoadingStartEvent",
    "now_ms",
]
