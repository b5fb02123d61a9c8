# src/orchestrator/batch.py — v1
"""Batch orchestration: cache short-circuit → scheduler passes → cache write-back.

Usage:
    orchestrator = ExtractionOrchestrator(worker, credentials=keys, concurrency_limit=3,
                                          result_cache=cache, model_name="gemini-2.5-flash")
    outcome = await orchestrator.run_batch(tasks, schema=schema)

Flow per batch:
  1. Fingerprint every task and serve cache hits without queueing them.
  2. Run scheduler passes over the rest, starting at
     min(limit, credentials, pending) workers.
  3. After a pass with failures, let the DegradationController requeue
     (rate limit, concurrency now 1) or abort.
  4. Write every fresh result back to the cache as soon as it arrives.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, Sequence

from deeptime.cache.fingerprint import compute_fingerprint
from deeptime.core.models import DocumentPayload, ExtractionResult
from deeptime.logging.context import set_batch_context
from deeptime.orchestrator.cancellation import CancellationToken
from deeptime.orchestrator.credentials import CredentialRotator
from deeptime.orchestrator.degradation import (
    Action,
    DegradationController,
    initial_concurrency,
)
from deeptime.orchestrator.models import BatchOutcome, Task, TaskState
from deeptime.orchestrator.scheduler import (
    ResultCallback,
    TaskScheduler,
    WorkerFn,
    notify_result,
)

if TYPE_CHECKING:
    from deeptime.cache.result_cache import ResultCache
    from deeptime.config.settings import Settings

logger = logging.getLogger(__name__)


class ExtractionOrchestrator:
    """Run batches of extraction tasks against a pool of credentials.

    Args:
        worker: ``async (task, credential, token) -> ExtractionResult``.
        credentials: Non-empty list of interchangeable API keys.
        concurrency_limit: Configured upper bound on parallel tasks.
        result_cache: Optional fingerprint cache. None disables caching.
        model_name: Model identifier, part of the fingerprint.
        mode: Execution mode flag, part of the fingerprint.
    """

    def __init__(
        self,
        worker: WorkerFn,
        credentials: Sequence[str],
        concurrency_limit: int = 1,
        result_cache: ResultCache | None = None,
        model_name: str = "",
        mode: str = "staged",
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self._worker = worker
        self._rotator = CredentialRotator(credentials)
        self._scheduler: TaskScheduler[ExtractionResult] = TaskScheduler(self._rotator)
        self._limit = concurrency_limit
        self._cache = result_cache
        self._model_name = model_name
        self._mode = mode

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        worker: WorkerFn | None = None,
        result_cache: ResultCache | None = None,
        schema: Any = None,
    ) -> ExtractionOrchestrator:
        """Build an orchestrator (and, if not given, its worker and cache) from Settings."""
        if worker is None:
            from deeptime.extraction.worker import ExtractionWorker
            worker = ExtractionWorker.from_settings(settings, schema=schema)
        if result_cache is None and settings.cache_enabled:
            from deeptime.cache.cache_factory import create_cache_store
            from deeptime.cache.result_cache import ResultCache
            result_cache = ResultCache(
                create_cache_store(settings), max_age_days=settings.cache_max_age_days,
            )
        return cls(
            worker=worker,
            credentials=settings.api_keys_list,
            concurrency_limit=settings.concurrency_limit,
            result_cache=result_cache,
            model_name=settings.llm_model,
            mode=settings.extraction_mode,
        )

    @property
    def rotator(self) -> CredentialRotator:
        return self._rotator

    def fingerprint(self, task: Task, schema: Any) -> str:
        """Cache key for a task under the current schema, model and mode."""
        return compute_fingerprint(task_text(task), schema, self._model_name, self._mode)

    async def run_batch(
        self,
        tasks: Sequence[Task],
        schema: Any = None,
        token: CancellationToken | None = None,
        on_result: ResultCallback | None = None,
    ) -> BatchOutcome[ExtractionResult]:
        """Process one batch of tasks to completion, abort, or cancellation.

        Args:
            tasks: Tasks with unique names; payload is DocumentPayload or str.
            schema: Active schema snapshot, used for fingerprinting.
            token: Cancellation token shared with every task.
            on_result: Called with (task, result) for each cached or fresh
                result as it becomes available.

        Returns:
            BatchOutcome. A terminal failure is reported through
            ``failed``/``errors``, never raised.
        """
        start = time.monotonic()
        token = token or CancellationToken()
        batch_id = uuid.uuid4().hex[:8]
        set_batch_context(batch_id)
        _check_unique_names(tasks)

        outcome: BatchOutcome[ExtractionResult] = BatchOutcome()
        fingerprints: dict[str, str] = {}
        pending: list[Task] = []

        for index, task in enumerate(tasks):
            if token.is_cancelled:
                outcome.unfinished.extend(t.name for t in tasks[index:])
                break
            if not task_text(task).strip():
                logger.info("Skipping %s: no selected text", task.name)
                await self._record(outcome, task, ExtractionResult(), on_result)
                outcome.succeeded.append(task.name)
                continue
            if self._cache is not None:
                fp = self.fingerprint(task, schema)
                fingerprints[task.name] = fp
                cached = await self._cache.get(fp)
                if cached is not None:
                    logger.info("Cache hit for %s", task.name)
                    await self._record(outcome, task, cached, on_result)
                    outcome.cached.append(task.name)
                    continue
            pending.append(task)

        logger.info(
            "Batch %s: %d tasks, %d cached, %d to process",
            batch_id, len(tasks), len(outcome.cached), len(pending),
        )

        if pending:
            await self._process(pending, fingerprints, token, on_result, outcome)

        if token.is_cancelled:
            outcome.cancelled = True
        outcome.duration_seconds = time.monotonic() - start
        logger.info(
            "Batch %s finished: %d succeeded, %d cached, failed=%s, cancelled=%s, %.1fs",
            batch_id,
            len(outcome.succeeded),
            len(outcome.cached),
            outcome.failed.task.name if outcome.failed else None,
            outcome.cancelled,
            outcome.duration_seconds,
        )
        return outcome

    async def _process(
        self,
        pending: list[Task],
        fingerprints: dict[str, str],
        token: CancellationToken,
        on_result: ResultCallback | None,
        outcome: BatchOutcome[ExtractionResult],
    ) -> None:
        controller = DegradationController(
            initial_concurrency(self._limit, len(self._rotator), len(pending))
        )
        outcome.initial_concurrency = controller.state.value

        async def on_success(task: Task, result: ExtractionResult) -> None:
            await self._write_back(task, result, fingerprints.get(task.name))
            await notify_result(on_result, task, result)

        queue = pending
        while queue:
            if token.is_cancelled:
                outcome.cancelled = True
                break

            outcome.passes += 1
            result = await self._scheduler.run_pass(
                queue, self._worker, controller.state.value, token, on_result=on_success,
            )
            outcome.peak_parallelism = max(outcome.peak_parallelism, result.peak_parallelism)
            for name, value in result.results.items():
                outcome.results[name] = value
                outcome.succeeded.append(name)
            queue = result.remaining

            if result.cancelled:
                outcome.cancelled = True
                break
            if not result.failures:
                continue

            decision = controller.handle(result.failures)
            if decision.action is Action.ABORT:
                outcome.failed = decision.failure
                outcome.errors.append(decision.message)
                queue = queue + [
                    f.task for f in result.failures if f is not decision.failure
                ]
                break
            queue = queue + decision.requeue

        outcome.unfinished.extend(
            t.name for t in queue if t.state is not TaskState.SUCCEEDED
        )
        outcome.notices.extend(controller.notices)
        outcome.final_concurrency = controller.state.value

    async def _write_back(
        self, task: Task, result: ExtractionResult, fingerprint: str | None,
    ) -> None:
        if self._cache is None or fingerprint is None:
            return
        try:
            await self._cache.put(fingerprint, result, document_id=task.name)
        except Exception as e:  # noqa: BLE001
            logger.warning("Could not cache result for %s: %s", task.name, e)

    @staticmethod
    async def _record(
        outcome: BatchOutcome[ExtractionResult],
        task: Task,
        result: ExtractionResult,
        on_result: ResultCallback | None,
    ) -> None:
        task.state = TaskState.SUCCEEDED
        outcome.results[task.name] = result
        await notify_result(on_result, task, result)


def task_text(task: Task) -> str:
    """Text a task will send to the model (and that its fingerprint covers)."""
    payload = task.payload
    if isinstance(payload, DocumentPayload):
        return payload.text
    if payload is None:
        return ""
    return str(payload)


def _check_unique_names(tasks: Sequence[Task]) -> None:
    seen: set[str] = set()
    for task in tasks:
        if task.name in seen:
            raise ValueError(f"Duplicate task name in batch: {task.name!r}")
        seen.add(task.name)
