"""SQLite-backed persistent store.

Persists bodies and metadata side-records to a local SQLite database at
``data/audio_cache.db`` so they survive process restarts.  Uses ``aiosqlite``
for async I/O; every operation opens a short-lived connection.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

import aiosqlite
import structlog

from soundcache.interfaces.store_provider import IPersistentStore, IStoreHandle
from soundcache.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "sqlite"
_DEFAULT_DB_PATH = Path("data/audio_cache.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS entries (
    name        TEXT    NOT NULL,
    key         TEXT    NOT NULL,
    body        BLOB    NOT NULL,
    headers     TEXT    NOT NULL DEFAULT '{}',
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (name, key)
);
"""

_UPSERT_SQL = """\
INSERT INTO entries (name, key, body, headers)
VALUES (?, ?, ?, ?)
ON CONFLICT(name, key)
DO UPDATE SET body       = excluded.body,
              headers    = excluded.headers,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = "SELECT body FROM entries WHERE name = ? AND key = ?;"
_DELETE_SQL = "DELETE FROM entries WHERE name = ? AND key = ?;"


class SQLiteStoreHandle(IStoreHandle):
    """A named partition (rows sharing ``name``) of the entries table."""

    def __init__(self, db_path: Path, name: str) -> None:
        self._db_path = db_path
        self._name = name

    async def get(self, key: str) -> bytes | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_SELECT_SQL, (self._name, key))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to read {key!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        return bytes(row[0]) if row else None

    async def put(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _UPSERT_SQL,
                    (self._name, key, bytes(body), json.dumps(dict(headers or {}))),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to write {key!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

    async def delete(self, key: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_DELETE_SQL, (self._name, key))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to delete {key!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        return deleted


class SQLiteStore(IPersistentStore):
    """SQLite-backed :class:`IPersistentStore`.

    The schema is created lazily on the first :meth:`open`.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the entries table if it doesn't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreError(
                message=f"Cannot initialise store at {self._db_path}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        self._initialized = True
        logger.info("sqlite_store_initialized", path=str(self._db_path))

    async def open(self, name: str) -> SQLiteStoreHandle:
        if not self._initialized:
            await self.initialize()
        return SQLiteStoreHandle(self._db_path, name)

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME
