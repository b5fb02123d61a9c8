# src/orchestrator/credentials.py — v1
"""Round-robin assignment of interchangeable API keys to tasks."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

logger = logging.getLogger(__name__)


class CredentialRotator:
    """Hand out credentials from a fixed pool in round-robin order.

    The cursor only ever increases; ``next()`` is serialized by a lock so
    concurrent callers each get their own cursor value.

    Args:
        credentials: Ordered, non-empty list of API keys.
    """

    def __init__(self, credentials: Sequence[str]) -> None:
        pool = [c for c in credentials if c]
        if not pool:
            raise ValueError("At least one API key is required")
        self._pool: tuple[str, ...] = tuple(pool)
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return len(self._pool)

    @property
    def cursor(self) -> int:
        return self._cursor

    def next(self) -> str:
        """Return the next credential and advance the cursor."""
        with self._lock:
            credential = self._pool[self._cursor % len(self._pool)]
            self._cursor += 1
        return credential

    def __len__(self) -> int:
        return len(self._pool)

    def __repr__(self) -> str:
        return f"CredentialRotator(size={len(self._pool)}, cursor={self._cursor})"
