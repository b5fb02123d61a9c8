# tests/unit/cache/test_result_cache.py — v1
"""Tests for cache/result_cache.py — fingerprint lookups over a store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from deeptime.cache.memory_store import MemoryCacheStore
from deeptime.cache.models import CacheEntry
from deeptime.cache.result_cache import ResultCache
from deeptime.core.models import ExtractionResult


class TestResultCache:
    @pytest.mark.asyncio
    async def test_miss_returns_none(self):
        cache = ResultCache(MemoryCacheStore())
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, sample_result):
        cache = ResultCache(MemoryCacheStore())
        await cache.put("fp1", sample_result, document_id="a.txt")
        cached = await cache.get("fp1")
        assert cached == sample_result

    @pytest.mark.asyncio
    async def test_returned_result_is_a_copy(self, sample_result):
        cache = ResultCache(MemoryCacheStore())
        await cache.put("fp1", sample_result)
        first = await cache.get("fp1")
        first.entities.clear()
        second = await cache.get("fp1")
        assert len(second.entities) == 2

    @pytest.mark.asyncio
    async def test_last_writer_wins(self, sample_result):
        cache = ResultCache(MemoryCacheStore())
        await cache.put("fp1", sample_result)
        await cache.put("fp1", ExtractionResult())
        assert await cache.get("fp1") == ExtractionResult()

    @pytest.mark.asyncio
    async def test_store_failure_is_a_miss(self):
        store = AsyncMock()
        store.get.side_effect = OSError("disk gone")
        cache = ResultCache(store)
        assert await cache.get("fp1") is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self, sample_result):
        store = MemoryCacheStore()
        old = CacheEntry(
            fingerprint="fp1",
            result=sample_result,
            created_at=datetime.now(timezone.utc) - timedelta(days=10),
        )
        await store.put("fp1", old)
        assert await ResultCache(store, max_age_days=5).get("fp1") is None
        assert await ResultCache(store, max_age_days=30).get("fp1") is not None
        assert await ResultCache(store).get("fp1") is not None

    @pytest.mark.asyncio
    async def test_size_and_clear(self, sample_result):
        cache = ResultCache(MemoryCacheStore())
        await cache.put("fp1", sample_result)
        await cache.put("fp2", sample_result)
        assert await cache.size() == 2
        assert await cache.clear() == 2
        assert await cache.size() == 0
