# src/orchestrator/degradation.py — v1
"""Concurrency degradation on provider throttling.

Policy ("fail until sequential, then give up"):
  - rate limit while concurrency > 1 → requeue the throttled task(s),
    drop concurrency to 1 for the rest of the batch, run another pass;
  - rate limit at concurrency 1 → abort the batch;
  - any other failure → abort the batch, no retry.

Concurrency is only ever lowered within a batch. Each batch builds its
own controller, so the next batch starts again from its own bound.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from deeptime.orchestrator.models import Task, TaskFailure, TaskState

logger = logging.getLogger(__name__)


def initial_concurrency(limit: int, credentials: int, pending: int) -> int:
    """Starting worker count: min of limit, credentials and pending, at least 1."""
    return max(1, min(limit, credentials, pending))


class ConcurrencyState:
    """Worker count for one batch, bounded to [1, initial]."""

    def __init__(self, initial: int) -> None:
        if initial < 1:
            raise ValueError(f"initial concurrency must be >= 1, got {initial}")
        self._initial = initial
        self._value = initial

    @property
    def value(self) -> int:
        return self._value

    @property
    def initial(self) -> int:
        return self._initial

    @property
    def degraded(self) -> bool:
        return self._value < self._initial

    def lower_to_one(self) -> bool:
        """Drop to sequential processing. Returns True if the value changed."""
        if self._value == 1:
            return False
        self._value = 1
        return True


class Action(str, Enum):
    RETRY = "retry"
    ABORT = "abort"


@dataclass
class Decision:
    """What the orchestrator should do after a pass with failures."""

    action: Action
    failure: TaskFailure | None = None
    requeue: list[Task] = field(default_factory=list)
    message: str = ""


class DegradationController:
    """Classify pass failures and reshape the rest of the batch.

    Args:
        initial: Starting concurrency for this batch.
    """

    def __init__(self, initial: int) -> None:
        self.state = ConcurrencyState(initial)
        self.notices: list[str] = []

    def handle(self, failures: list[TaskFailure]) -> Decision:
        """Decide between requeue-and-retry and abort.

        Args:
            failures: Failures observed in one pass (at least one).
        """
        if not failures:
            raise ValueError("handle() requires at least one failure")

        terminal = next((f for f in failures if not f.is_rate_limit), None)
        if terminal is not None:
            message = f"Processing failed on file {terminal.task.name}: {terminal.error}"
            logger.error(message)
            return Decision(action=Action.ABORT, failure=terminal, message=message)

        if self.state.lower_to_one():
            requeue = [f.task for f in failures]
            for task in requeue:
                task.state = TaskState.PENDING
                task.requeued = True
            names = ", ".join(t.name for t in requeue)
            message = (
                f"Rate limit hit on {names}. Reduced parallelism: "
                f"switching to sequential processing."
            )
            self.notices.append(message)
            logger.info(message)
            return Decision(action=Action.RETRY, requeue=requeue, message=message)

        failure = failures[0]
        message = (
            f"Rate limit hit on file {failure.task.name}. "
            f"Even sequential processing failed. Stopping."
        )
        logger.error(message)
        return Decision(action=Action.ABORT, failure=failure, message=message)
