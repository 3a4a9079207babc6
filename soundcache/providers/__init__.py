"""Concrete adapters for the soundcache interfaces.

- cache/      -- DecodedBufferCache (cachetools LRU)
- store/      -- MemoryStore, SQLiteStore (aiosqlite)
- transport/  -- HttpxTransport (httpx)
- decoder/    -- RawBytesDecoder
"""
