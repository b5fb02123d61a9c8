# src/orchestrator/scheduler.py — v1
"""Bounded worker pool over a shared task queue.

One ``run_pass`` call runs a fixed number of workers until the queue is
empty, a task fails, or the batch is cancelled. After the first failure
no worker dequeues another task; workers already running are left to
finish and their results are kept. Deciding what to do with the failure
(requeue at lower concurrency or abort) belongs to the
DegradationController; the scheduler only reports.

Queue and running-count mutations go through an asyncio.Lock, so the
pool stays correct even if a worker function yields mid-dequeue.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from deeptime.llm.errors import classify_error
from deeptime.logging.context import set_task_context
from deeptime.orchestrator.cancellation import CancellationToken, OperationCancelled
from deeptime.orchestrator.credentials import CredentialRotator
from deeptime.orchestrator.models import PassOutcome, Task, TaskFailure, TaskState

logger = logging.getLogger(__name__)

R = TypeVar("R")

WorkerFn = Callable[[Task, str, CancellationToken], Awaitable[Any]]
ResultCallback = Callable[[Task, Any], Any]


class _TaskQueue:
    """FIFO of pending tasks guarded by an asyncio.Lock."""

    def __init__(self, tasks: Iterable[Task]) -> None:
        self._items: deque[Task] = deque(tasks)
        self._lock = asyncio.Lock()

    async def pop(self) -> Task | None:
        async with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def drain(self) -> list[Task]:
        items = list(self._items)
        self._items.clear()
        return items

    def __len__(self) -> int:
        return len(self._items)


class TaskScheduler(Generic[R]):
    """Run tasks through a worker function with bounded parallelism.

    Args:
        rotator: Credential source; each started task takes one credential.
    """

    def __init__(self, rotator: CredentialRotator) -> None:
        self._rotator = rotator

    @property
    def rotator(self) -> CredentialRotator:
        return self._rotator

    async def run_pass(
        self,
        tasks: list[Task],
        worker: WorkerFn,
        concurrency: int,
        token: CancellationToken,
        on_result: ResultCallback | None = None,
    ) -> PassOutcome[R]:
        """Run one pass over ``tasks`` with ``concurrency`` workers.

        Returns:
            PassOutcome with per-task results, failures observed in this
            pass, and the tasks that were never started (or were
            interrupted by cancellation).
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        run = _PassRun(
            queue=_TaskQueue(tasks),
            rotator=self._rotator,
            worker=worker,
            token=token,
            on_result=on_result,
        )
        worker_count = min(concurrency, len(tasks))
        logger.debug(
            "Starting pass: %d tasks, %d workers", len(tasks), worker_count,
        )
        if worker_count:
            await asyncio.gather(*(run.worker_loop(i) for i in range(worker_count)))

        run.outcome.remaining = run.interrupted + run.queue.drain()
        return run.outcome


class _PassRun:
    """Mutable state of one scheduler pass, shared by its workers."""

    def __init__(
        self,
        queue: _TaskQueue,
        rotator: CredentialRotator,
        worker: WorkerFn,
        token: CancellationToken,
        on_result: ResultCallback | None,
    ) -> None:
        self.queue = queue
        self.rotator = rotator
        self.worker = worker
        self.token = token
        self.on_result = on_result
        self.outcome: PassOutcome[Any] = PassOutcome()
        self.interrupted: list[Task] = []
        self.halted = False
        self._running = 0
        self._lock = asyncio.Lock()

    async def worker_loop(self, worker_id: int) -> None:
        while True:
            if self.token.is_cancelled:
                self.outcome.cancelled = True
                return
            if self.halted:
                return
            task = await self.queue.pop()
            if task is None:
                return
            await self._run_one(task, worker_id)

    async def _run_one(self, task: Task, worker_id: int) -> None:
        credential = self.rotator.next()
        set_task_context(task.name)
        task.mark_running()
        async with self._lock:
            self._running += 1
            self.outcome.peak_parallelism = max(
                self.outcome.peak_parallelism, self._running,
            )
        logger.debug("Worker %d started %s (attempt %d)", worker_id, task.name, task.attempts)

        try:
            result = await self.worker(task, credential, self.token)
            if self.token.is_cancelled:
                raise OperationCancelled("result returned after cancellation")
        except OperationCancelled:
            self._interrupt(task)
            return
        except Exception as e:
            if self.token.is_cancelled:
                self._interrupt(task)
            else:
                self._fail(task, e)
            return
        finally:
            async with self._lock:
                self._running -= 1

        task.state = TaskState.SUCCEEDED
        self.outcome.results[task.name] = result
        await notify_result(self.on_result, task, result)

    def _interrupt(self, task: Task) -> None:
        logger.debug("Discarding %s after cancellation", task.name)
        self.outcome.results.pop(task.name, None)
        task.state = TaskState.PENDING
        self.interrupted.append(task)
        self.outcome.cancelled = True

    def _fail(self, task: Task, error: Exception) -> None:
        kind = classify_error(error)
        self.outcome.results.pop(task.name, None)
        task.state = TaskState.FAILED
        self.outcome.failures.append(TaskFailure(task=task, error=error, kind=kind))
        self.halted = True
        logger.warning("Task %s failed (%s): %s", task.name, kind.value, error)


async def notify_result(callback: ResultCallback | None, task: Task, result: Any) -> None:
    """Hand a finished result to the caller's callback.

    The task has already succeeded at this point, so an error raised by the
    callback is logged and does not change the task's outcome.
    """
    if callback is None:
        return
    try:
        emitted = callback(task, result)
        if inspect.isawaitable(emitted):
            await emitted
    except Exception:
        logger.exception("Result callback failed for %s", task.name)
