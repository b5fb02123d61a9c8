# src/cache/memory_store.py — v1
"""In-process cache store (CACHE_BACKEND=memory).

Entries live for the lifetime of the process. Used by tests and by
one-shot CLI runs that do not want anything written to disk.
"""

from __future__ import annotations

from deeptime.cache.base_cache_store import BaseCacheStore
from deeptime.cache.models import CacheEntry


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    async def get(self, key: str) -> CacheEntry | None:
        data = self._entries.get(key)
        if data is None:
            return None
        return CacheEntry.model_validate_json(data)

    async def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry.model_dump_json()

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_entries(self) -> list[CacheEntry]:
        return [CacheEntry.model_validate_json(d) for d in self._entries.values()]

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count
