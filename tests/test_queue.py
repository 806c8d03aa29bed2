import asyncio

from reviewbot.queue import (
    configure_review_handler,
    enqueue_review_job,
    pending_jobs,
    shutdown_queue,
    wait_for_pending_jobs,
)
from reviewbot.queue.models import ReviewJob


def _job(delivery_id: str, number: int = 1) -> ReviewJob:
    return ReviewJob(delivery_id=delivery_id, provider="github", action="opened",
                     owner="octo", repo="widgets", number=number)


def test_jobs_are_processed_in_order() -> None:
    handled = []

    async def handler(job: ReviewJob) -> None:
        handled.append(job.delivery_id)

    async def scenario() -> None:
        configure_review_handler(handler)
        try:
            await enqueue_review_job(_job("a"))
            await enqueue_review_job({"delivery_id": "b", "provider": "gitea", "action": "opened",
                                      "owner": "octo", "repo": "widgets", "number": 2})
            await wait_for_pending_jobs()
        finally:
            configure_review_handler(None)
            await shutdown_queue()

    asyncio.run(scenario())

    assert handled == ["a", "b"]
    assert pending_jobs() == 0


def test_failing_job_does_not_stop_the_worker() -> None:
    handled = []

    async def handler(job: ReviewJob) -> None:
        if job.delivery_id == "bad":
            raise RuntimeError("review exploded")
        handled.append(job.delivery_id)

    async def scenario() -> None:
        configure_review_handler(handler)
        try:
            await enqueue_review_job(_job("bad", number=1))
            await enqueue_review_job(_job("good", number=2))
            await wait_for_pending_jobs()
        finally:
            configure_review_handler(None)
            await shutdown_queue()

    asyncio.run(scenario())

    assert handled == ["good"]


def test_job_exposes_pull_request() -> None:
    details = _job("x", number=9).pr_details()

    assert (details.full_name, details.number) == ("octo/widgets", 9)


def test_newer_delivery_supersedes_queued_job() -> None:
    handled = []

    async def handler(job: ReviewJob) -> None:
        handled.append(job.delivery_id)

    async def scenario() -> None:
        configure_review_handler(handler)
        try:
            # Nothing yields between these puts, so the worker sees all three queued.
            await enqueue_review_job(_job("first-push", number=5))
            await enqueue_review_job(_job("other-pr", number=6))
            await enqueue_review_job(_job("second-push", number=5))
            await wait_for_pending_jobs()
        finally:
            configure_review_handler(None)
            await shutdown_queue()

    asyncio.run(scenario())

    assert handled == ["other-pr", "second-push"]
