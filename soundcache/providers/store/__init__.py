"""Persistent store adapters.

MemoryStore keeps everything in a dict (tests, throwaway processes);
SQLiteStore persists to a local database file via aiosqlite.
"""

from soundcache.providers.store.memory_store import MemoryStore, MemoryStoreHandle
from soundcache.providers.store.sqlite_store import SQLiteStore, SQLiteStoreHandle

__all__ = ["MemoryStore", "MemoryStoreHandle", "SQLiteStore", "SQLiteStoreHandle"]
