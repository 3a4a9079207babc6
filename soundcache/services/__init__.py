"""Core cache services.

- freshness      -- decides store / revalidate / refetch from stored metadata
- store_adapter  -- body + metadata pair reads and writes with cleanup
- fetch_executor -- conditional GET, progress streaming, 304 recovery
- coalescer      -- one in-flight load per key, per-caller cancellation
- notifier       -- callback fan-out for loading and cache events
- audio_cache    -- AudioCache, the public entry point
"""

from soundcache.services.audio_cache import AudioCache
from soundcache.services.coalescer import PendingOperation, RequestCoalescer
from soundcache.services.fetch_executor import ConditionalFetchExecutor, FetchResult
from soundcache.services.freshness import evaluate_freshness, parse_max_age, requires_revalidation
from soundcache.services.notifier import EventDispatcher
from soundcache.services.store_adapter import PersistentStoreAdapter, metadata_key

__all__ = [
    "AudioCache",
    "ConditionalFetchExecutor",
    "EventDispatcher",
    "FetchResult",
    "PendingOperation",
    "PersistentStoreAdapter",
    "RequestCoalescer",
    "evaluate_freshness",
    "metadata_key",
    "parse_max_age",
    "requires_revalidation",
]
