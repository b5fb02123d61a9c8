# tests/unit/cache/test_base_cache_store.py — v2
"""Tests for cache/base_cache_store.py and the in-memory backend."""

from __future__ import annotations

import pytest

from deeptime.cache.base_cache_store import BaseCacheStore
from deeptime.cache.memory_store import MemoryCacheStore
from deeptime.cache.models import CacheEntry
from deeptime.core.models import ExtractionResult


class _DictStore(BaseCacheStore):
    """Minimal subclass relying on the default clear()."""

    def __init__(self):
        self.data: dict[str, CacheEntry] = {}

    async def get(self, key):
        return self.data.get(key)

    async def put(self, key, entry):
        self.data[key] = entry

    async def delete(self, key):
        self.data.pop(key, None)

    async def list_entries(self):
        return list(self.data.values())


def _entry(fp: str) -> CacheEntry:
    return CacheEntry(fingerprint=fp, result=ExtractionResult())


class TestBaseCacheStore:
    def test_is_abstract(self):
        with pytest.raises(TypeError):
            BaseCacheStore()  # type: ignore[abstract]

    @pytest.mark.asyncio
    async def test_default_clear_deletes_by_fingerprint(self):
        store = _DictStore()
        await store.put("a", _entry("a"))
        await store.put("b", _entry("b"))
        assert await store.clear() == 2
        assert store.data == {}


class TestMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_put_get_delete(self):
        store = MemoryCacheStore()
        await store.put("a", _entry("a"))
        assert (await store.get("a")).fingerprint == "a"
        await store.delete("a")
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self):
        await MemoryCacheStore().delete("nope")

    @pytest.mark.asyncio
    async def test_list_and_clear(self):
        store = MemoryCacheStore()
        await store.put("a", _entry("a"))
        await store.put("b", _entry("b"))
        assert {e.fingerprint for e in await store.list_entries()} == {"a", "b"}
        assert await store.clear() == 2
        assert await store.list_entries() == []
