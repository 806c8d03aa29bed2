"""In-process review queue.

Webhook deliveries are acknowledged immediately and reviewed one at a time by a
single background worker. When a newer delivery for the same pull request is
queued before an older one has started, the older one is skipped: it would
review a head commit that is no longer current.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Tuple

from reviewbot.logger import get_logger, log_failure, log_timing, log_with_context

from .models import ReviewJob

logger = get_logger()

ReviewJobHandler = Callable[[ReviewJob], Awaitable[None]]
PullRequestKey = Tuple[str, str, int]


def _pull_request_key(job: ReviewJob) -> PullRequestKey:
    return job.provider, job.full_name, job.number


class _ReviewQueue:
    def __init__(self) -> None:
        self._jobs: asyncio.Queue[ReviewJob] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._handler: ReviewJobHandler | None = None
        # Most recent delivery id queued per pull request.
        self._latest: Dict[PullRequestKey, str] = {}

    def configure_handler(self, handler: ReviewJobHandler | None) -> None:
        self._handler = handler

    def _jobs_with_worker(self) -> asyncio.Queue[ReviewJob]:
        # Created lazily so the queue binds to the running event loop.
        if self._jobs is None:
            self._jobs = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run_worker(self._jobs))
        return self._jobs

    def _is_superseded(self, job: ReviewJob) -> bool:
        return self._latest.get(_pull_request_key(job), job.delivery_id) != job.delivery_id

    async def _handle(self, job: ReviewJob) -> None:
        job_logger = log_with_context(logger, delivery_id=job.delivery_id, provider=job.provider,
                                      repository=job.full_name, pull_number=job.number)
        if self._is_superseded(job):
            job_logger.info("=== QUEUE: Skipping job superseded by a newer delivery ===")
            return
        self._latest.pop(_pull_request_key(job), None)

        if self._handler is None:
            log_failure(job_logger, "No review job handler configured; dropping job")
            return

        waited = time.time() - job.received_at.timestamp()
        job_logger.info(f"=== QUEUE: Job started after waiting {waited:.1f}s ===")
        with log_timing(job_logger, "process_review_job"):
            await self._handler(job)

    async def _run_worker(self, jobs: asyncio.Queue[ReviewJob]) -> None:
        while True:
            job = await jobs.get()
            try:
                await self._handle(job)
            except Exception as exc:  # pragma: no cover - keeps the worker alive
                log_failure(logger, "Review job failed", exc, delivery_id=job.delivery_id,
                            repository=job.full_name, pull_number=job.number)
                logger.exception("Full exception traceback:")
            finally:
                jobs.task_done()

    async def enqueue(self, job: ReviewJob) -> None:
        jobs = self._jobs_with_worker()
        self._latest[_pull_request_key(job)] = job.delivery_id
        await jobs.put(job)

    async def join(self) -> None:
        if self._jobs is not None:
            await self._jobs.join()

    async def shutdown(self) -> None:
        worker, self._worker = self._worker, None
        self._jobs = None
        self._latest.clear()
        if worker is None:
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            logger.debug("Review queue worker stopped")

    def pending(self) -> int:
        return 0 if self._jobs is None else self._jobs.qsize()


_QUEUE = _ReviewQueue()


async def enqueue_review_job(job: ReviewJob | dict[str, Any]) -> None:
    """Queue ``job`` for review, starting the worker on first use."""

    review_job = job if isinstance(job, ReviewJob) else ReviewJob.model_validate(job)
    log_with_context(logger, delivery_id=review_job.delivery_id, repository=review_job.full_name,
                     pull_number=review_job.number).debug(f"Queueing review job (pending_jobs={_QUEUE.pending()})")
    await _QUEUE.enqueue(review_job)


def configure_review_handler(handler: ReviewJobHandler | None) -> None:
    """Set the coroutine that reviews each job taken from the queue."""

    _QUEUE.configure_handler(handler)


async def wait_for_pending_jobs() -> None:
    await _QUEUE.join()


async def shutdown_queue() -> None:
    """Stop the worker and forget queued jobs."""

    await _QUEUE.shutdown()


def pending_jobs() -> int:
    return _QUEUE.pending()
