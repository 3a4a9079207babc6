"""Decoded-buffer cache.

DecodedBufferCache keeps decoded audio buffers in process memory with
least-recently-used eviction, so repeat loads of the same URL skip both the
persistent store and the decoder.
"""

from soundcache.providers.cache.memory_cache import DEFAULT_CAPACITY, DecodedBufferCache

__all__ = ["DEFAULT_CAPACITY", "DecodedBufferCache"]
