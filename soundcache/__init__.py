"""soundcache -- three-tier cache for decoded audio buffers.

Memory (decoded buffers, LRU) -> persistent store (bytes + validators) ->
network (conditional GET).  Concurrent loads of one URL are coalesced.
"""

from soundcache.models.events import LoadingCallbacks
from soundcache.services.audio_cache import AudioCache
from soundcache.utils.concurrency import AbortSignal

__version__ = "0.1.0"

__all__ = ["AbortSignal", "AudioCache", "LoadingCallbacks", "__version__"]
