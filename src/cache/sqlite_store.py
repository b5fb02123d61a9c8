# src/cache/sqlite_store.py — v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency.
Better than the JSON backend once the cache holds thousands of documents.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from deeptime.cache.base_cache_store import BaseCacheStore
from deeptime.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    fingerprint TEXT PRIMARY KEY,
    document_id TEXT,
    data TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_document_id ON cache_entries(document_id);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries WHERE fingerprint = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return CacheEntry.model_validate_json(row[0])
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_entries
               (fingerprint, document_id, data, created_at)
               VALUES (?, ?, ?, ?)""",
            (
                key,
                entry.document_id,
                entry.model_dump_json(),
                entry.created_at.isoformat(),
            ),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._conn.execute("DELETE FROM cache_entries WHERE fingerprint = ?", (key,))
        self._conn.commit()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries ORDER BY created_at"
        )
        entries: list[CacheEntry] = []
        for (data,) in cursor.fetchall():
            try:
                entries.append(CacheEntry.model_validate_json(data))
            except ValidationError:
                continue
        return entries

    async def clear(self) -> int:
        """Drop every row in one statement."""
        cursor = self._conn.execute("DELETE FROM cache_entries")
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
