# src/logging/context.py — v2
"""Contextual logging support — attach batch_id, task_id, stage to log records.

Each worker runs in its own asyncio task, which gets a copy of the
context, so setting task_id inside a worker never leaks to its siblings.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    batch_id: str | None = None
    task_id: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        task_id=_task_id.get(),
        stage=_stage.get(),
    )


def set_batch_context(batch_id: str) -> None:
    """Set batch-level context (called once per batch)."""
    _batch_id.set(batch_id)


def set_task_context(task_id: str, stage: str | None = None) -> None:
    """Set task-level context (called when a worker starts a task)."""
    _task_id.set(task_id)
    _stage.set(stage)


def set_stage(stage: str | None) -> None:
    """Update the extraction stage of the current task."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _task_id.set(None)
    _stage.set(None)
