# src/orchestrator/cancellation.py — v1
"""Cooperative cancellation shared by a batch and all of its tasks.

One irreversible transition: armed → cancelled. Nothing is interrupted
forcibly; the scheduler, the workers and the stream loops poll the token
at each suspension point and stop starting new work.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Raised inside a task to unwind after cancellation.

    Control-flow only: the scheduler never reports it as a task failure.
    """


class CancellationToken:
    """Batch-scoped cancellation signal with many readers."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Idempotent; the first reason is kept."""
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()
        logger.info("Cancellation requested%s", f": {reason}" if reason else "")

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if the token has been cancelled."""
        if self._cancelled:
            raise OperationCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        """Suspend until cancel() is called."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()
