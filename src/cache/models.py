# src/cache/models.py — v2
"""Cache domain models: CacheEntry."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from deeptime.core.models import ExtractionResult


class CacheEntry(BaseModel):
    """Single cache entry linking a fingerprint to an extraction result.

    Entries are written once per fingerprint and never edited in place.
    """

    fingerprint: str
    document_id: str = ""
    result: ExtractionResult
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
