# src/batch/pool.py — v1
"""Job pool — bounded-concurrency fan-out of one work function over many jobs.

Every job is scheduled as its own asyncio task and admitted through a
counting semaphore, so at most ``max_concurrency`` work calls are in flight.
Finished results go to a queue sized to the job count and are drained by a
single collector.

Failure isolation: a job that raises is recorded as ``success=False`` and never
affects its siblings. The pool itself only fails on invalid input or
cancellation.

Cancellation (cancel event, timeout, or cancellation of the awaiting task)
cancels the outstanding job tasks and waits for them to unwind before
returning, so no task outlives the call. Synchronous work runs in worker
threads, which cannot be interrupted; their late results are discarded.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Union

from docflow.batch.models import BatchSummary, JobDescriptor, JobResult
from docflow.core.errors import BatchCancelledError, InvalidInputError
from docflow.logging.context import set_job_context

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4

WorkResult = Union[Mapping[str, Any], None]
WorkFn = Callable[[JobDescriptor], Union[WorkResult, Awaitable[WorkResult]]]


class JobPool:
    """Run independent jobs through one work function with bounded concurrency.

    Args:
        max_concurrency: Maximum number of concurrently executing jobs.
            Values <= 0 fall back to DEFAULT_MAX_CONCURRENCY.
    """

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        if max_concurrency <= 0:
            max_concurrency = DEFAULT_MAX_CONCURRENCY
        self._max_concurrency = max_concurrency

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def run(
        self,
        jobs: Sequence[JobDescriptor | str],
        work: WorkFn,
        cancel_event: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> BatchSummary:
        """Execute every job and aggregate the results.

        Args:
            jobs: Job descriptors (bare strings are used as job ids).
            work: Sync or async callable taking a JobDescriptor and returning
                a mapping (or None).
            cancel_event: Optional event; setting it cancels the batch.
            timeout: Optional deadline in seconds for the whole batch.

        Returns:
            BatchSummary with one JobResult per job, in arrival order.

        Raises:
            InvalidInputError: If ``jobs`` is empty.
            BatchCancelledError: If the cancel event fired or the timeout
                expired; ``partial`` holds the jobs that had finished.
        """
        descriptors = [JobDescriptor.coerce(j) for j in jobs]
        if not descriptors:
            raise InvalidInputError("job list is empty")

        semaphore = asyncio.Semaphore(self._max_concurrency)
        queue: asyncio.Queue[JobResult] = asyncio.Queue(maxsize=len(descriptors))
        results: list[JobResult] = []

        logger.info(
            "Starting batch: %d jobs, max_concurrency=%d",
            len(descriptors), self._max_concurrency,
        )
        start = time.perf_counter()

        tasks = [
            asyncio.create_task(
                self._run_job(job, work, semaphore, queue), name=f"job:{job.id}",
            )
            for job in descriptors
        ]
        collector = asyncio.create_task(
            self._collect(queue, len(descriptors), results), name="job-collector",
        )
        waiters: set[asyncio.Future[Any]] = {collector}
        cancel_waiter: asyncio.Task[Any] | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.create_task(cancel_event.wait(), name="job-cancel")
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            logger.warning("Batch task cancelled, draining %d jobs", len(tasks))
            await _drain([collector, *tasks])
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        elapsed_ms = (time.perf_counter() - start) * 1000

        if collector not in done:
            reason = "cancel signal" if cancel_waiter in done else f"timeout ({timeout}s)"
            await _drain([collector, *tasks])
            partial = BatchSummary.from_results(results, elapsed_ms)
            logger.warning(
                "Batch cancelled by %s: %d/%d jobs finished",
                reason, len(results), len(descriptors),
            )
            raise BatchCancelledError(
                f"batch cancelled by {reason}: {len(results)}/{len(descriptors)} "
                "jobs finished",
                partial=partial,
                submitted=len(descriptors),
            )

        # Collector finished, every job task has already put its result.
        await asyncio.gather(*tasks)

        summary = BatchSummary.from_results(results, elapsed_ms)
        logger.info(
            "Batch complete: %d total, %d successful, %d failed, %.1fms",
            summary.total, summary.successful, summary.failed,
            summary.total_duration_ms,
        )
        return summary

    async def _run_job(
        self,
        job: JobDescriptor,
        work: WorkFn,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue[JobResult],
    ) -> None:
        """Admit, execute and time one job, then hand its result to the queue."""
        async with semaphore:
            set_job_context(job.id)
            start = time.perf_counter()
            try:
                output = await _call_work(work, job)
            except Exception as exc:
                logger.warning("Job '%s' failed: %s", job.id, exc)
                result = JobResult(id=job.id, success=False, error=str(exc) or type(exc).__name__)
            else:
                result = JobResult(id=job.id, success=True, output=output)
            result.duration_ms = round((time.perf_counter() - start) * 1000, 3)
        queue.put_nowait(result)

    @staticmethod
    async def _collect(
        queue: asyncio.Queue[JobResult], count: int, results: list[JobResult],
    ) -> None:
        for _ in range(count):
            results.append(await queue.get())


async def run_batch(
    jobs: Sequence[JobDescriptor | str],
    work: WorkFn,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    cancel_event: asyncio.Event | None = None,
    timeout: float | None = None,
) -> BatchSummary:
    """Run ``work`` over ``jobs`` with at most ``max_concurrency`` in flight."""
    pool = JobPool(max_concurrency=max_concurrency)
    return await pool.run(jobs, work, cancel_event=cancel_event, timeout=timeout)


async def _call_work(work: WorkFn, job: JobDescriptor) -> dict[str, Any]:
    """Invoke sync or async work and normalize its output to a dict."""
    if inspect.iscoroutinefunction(work):
        value = await work(job)
    else:
        value = await asyncio.to_thread(work, job)
        if inspect.isawaitable(value):
            value = await value
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(key): item for key, item in value.items()}
    return {"result": value}


async def _drain(tasks: list[asyncio.Task[Any]]) -> None:
    """Cancel unfinished tasks and wait until all of them have unwound."""
    for task in tasks:
        if not task.done():
            task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
