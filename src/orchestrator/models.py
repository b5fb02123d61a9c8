# src/orchestrator/models.py — v1
"""Orchestration models: Task, TaskFailure, PassOutcome, BatchOutcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from deeptime.llm.errors import ErrorKind

R = TypeVar("R")


class TaskState(str, Enum):
    """Lifecycle of a task inside one batch."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(eq=False)
class Task:
    """One unit of orchestrated work, typically one uploaded document.

    Identity is object identity: two tasks with the same name are still
    distinct queue items.
    """

    name: str
    payload: Any = None
    state: TaskState = TaskState.PENDING
    attempts: int = 0
    requeued: bool = False

    def mark_running(self) -> None:
        self.state = TaskState.RUNNING
        self.attempts += 1

    def __repr__(self) -> str:
        return f"Task({self.name!r}, state={self.state.value}, attempts={self.attempts})"


@dataclass
class TaskFailure:
    """A task that raised, with the error and its classification."""

    task: Task
    error: BaseException
    kind: ErrorKind

    @property
    def is_rate_limit(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMIT

    def describe(self) -> str:
        return f"{self.task.name}: {self.error}"


@dataclass
class PassOutcome(Generic[R]):
    """Result of one scheduler pass at a fixed worker count."""

    results: dict[str, R] = field(default_factory=dict)
    failures: list[TaskFailure] = field(default_factory=list)
    remaining: list[Task] = field(default_factory=list)
    peak_parallelism: int = 0
    cancelled: bool = False


@dataclass
class BatchOutcome(Generic[R]):
    """Aggregate result of a full batch, across all passes.

    ``results`` holds both freshly computed and cached results, keyed by
    task name. ``failed`` names the task that stopped the batch, if any.
    """

    results: dict[str, R] = field(default_factory=dict)
    cached: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failed: TaskFailure | None = None
    unfinished: list[str] = field(default_factory=list)
    cancelled: bool = False
    notices: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    initial_concurrency: int = 0
    final_concurrency: int = 0
    peak_parallelism: int = 0
    passes: int = 0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.failed is None and not self.cancelled and not self.unfinished
