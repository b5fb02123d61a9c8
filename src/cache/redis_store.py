# src/cache/redis_store.py — v2
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Lets several extraction hosts share one result cache.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from deeptime.cache.base_cache_store import BaseCacheStore
from deeptime.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "deeptime:cache:"
_INDEX_KEY = "deeptime:cache:__index__"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for shared deployments."""

    def __init__(self, redis_url: str, client: object | None = None) -> None:
        if client is None:
            try:
                import redis
            except ImportError as e:
                raise ImportError(
                    "redis package required: pip install redis"
                ) from e
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._client = client

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        data = self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry."""
        self._client.set(f"{_KEY_PREFIX}{key}", entry.model_dump_json())
        # Index of all keys for list_entries / clear
        self._client.sadd(_INDEX_KEY, key)

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._client.delete(f"{_KEY_PREFIX}{key}")
        self._client.srem(_INDEX_KEY, key)

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries via the key index."""
        entries: list[CacheEntry] = []
        for key in sorted(self._client.smembers(_INDEX_KEY)):
            data = self._client.get(f"{_KEY_PREFIX}{key}")
            if data is None:
                continue
            try:
                entries.append(CacheEntry.model_validate_json(data))
            except ValidationError:
                continue
        return entries
