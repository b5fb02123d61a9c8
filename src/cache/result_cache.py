# src/cache/result_cache.py — v1
"""Result cache: fingerprint → ExtractionResult, consulted before any network call.

Thin layer over a BaseCacheStore. Entries are write-once per fingerprint;
a schema, model or mode change produces a new fingerprint instead of an
in-place update. Concurrent puts of the same fingerprint are allowed, the
last writer wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from deeptime.cache.base_cache_store import BaseCacheStore
from deeptime.cache.models import CacheEntry
from deeptime.core.models import ExtractionResult

logger = logging.getLogger(__name__)


class ResultCache:
    """Fingerprint-keyed store of previously computed extraction results.

    Args:
        store: Persistent key/value backend.
        max_age_days: Entries older than this are treated as absent.
            0 disables expiry.
    """

    def __init__(self, store: BaseCacheStore, max_age_days: int = 0) -> None:
        self._store = store
        self._max_age = timedelta(days=max_age_days) if max_age_days > 0 else None

    @property
    def store(self) -> BaseCacheStore:
        return self._store

    async def get(self, fingerprint: str) -> ExtractionResult | None:
        """Return the cached result, or None when absent, unreadable or expired."""
        try:
            entry = await self._store.get(fingerprint)
        except Exception as e:  # noqa: BLE001
            logger.warning("Cache read failed for %s: %s", fingerprint, e)
            return None
        if entry is None:
            return None
        if self._is_expired(entry):
            logger.debug("Cache entry %s expired", fingerprint)
            return None
        return entry.result

    async def put(
        self, fingerprint: str, result: ExtractionResult, document_id: str = "",
    ) -> None:
        """Store a freshly computed result under its fingerprint."""
        entry = CacheEntry(
            fingerprint=fingerprint,
            document_id=document_id,
            result=result,
        )
        await self._store.put(fingerprint, entry)
        logger.debug("Cached result for %s (%s)", document_id or "?", fingerprint)

    async def size(self) -> int:
        return len(await self._store.list_entries())

    async def clear(self) -> int:
        removed = await self._store.clear()
        logger.info("Cleared %d cache entries", removed)
        return removed

    def _is_expired(self, entry: CacheEntry) -> bool:
        if self._max_age is None:
            return False
        created = entry.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - created > self._max_age
