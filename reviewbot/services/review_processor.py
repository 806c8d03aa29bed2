"""Queue job processor: wires settings, clients and the orchestrator for one review."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from reviewbot.config import Settings, SettingsError, get_settings
from reviewbot.llm.base import ModelInvoker
from reviewbot.llm.factory import build_model_invoker
from reviewbot.logger import get_logger, log_failure, log_success, log_timing, log_with_context, pr_logger
from reviewbot.models.review import PRDetails
from reviewbot.queue.models import ReviewJob
from reviewbot.services.review_orchestrator import ReviewError, ReviewOrchestrator
from reviewbot.vcs.base import VCSAdapter, VCSError
from reviewbot.vcs.factory import build_vcs_client

logger = get_logger()

FAILURE_COMMENT = "❌ AI Review Failed: An internal error occurred."


class ReviewProcessorError(RuntimeError):
    """Raised when a review job cannot be set up or run."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error


async def _aclose(resource: Any) -> None:
    close = getattr(resource, "aclose", None)
    if close is not None:
        await close()


async def run_review(
    settings: Settings,
    pr: PRDetails,
    *,
    provider: str | None = None,
    vcs_factory: Callable[..., VCSAdapter] = build_vcs_client,
    model_factory: Callable[[Settings], ModelInvoker] = build_model_invoker,
) -> str:
    """Run one review with clients built from ``settings``.

    Raises :class:`ReviewProcessorError` on configuration problems, :class:`ReviewError`
    when the review itself fails, and :class:`asyncio.TimeoutError` when it exceeds
    ``review.timeout``. Review and timeout failures are reported on the pull request.
    """

    ctx_logger = pr_logger(logger, pr.full_name, pr.number)
    try:
        vcs_client = vcs_factory(settings, provider)
    except SettingsError as exc:
        log_failure(logger, "VCS client is not configured", exc, repository=pr.full_name)
        raise ReviewProcessorError("VCS client is not configured", "create_vcs_client", exc) from exc

    try:
        try:
            model = model_factory(settings)
        except SettingsError as exc:
            log_failure(logger, "Model backend is not configured", exc, repository=pr.full_name)
            raise ReviewProcessorError("Model backend is not configured", "create_model", exc) from exc

        orchestrator = ReviewOrchestrator(
            vcs_client,
            model,
            settings.review_prompt,
            max_concurrency=settings.review.max_concurrency,
        )
        try:
            with log_timing(ctx_logger, "run_review"):
                return await asyncio.wait_for(orchestrator.run(pr), timeout=settings.review.timeout)
        except (ReviewError, asyncio.TimeoutError) as exc:
            await _report_failure(vcs_client, pr, exc)
            raise
        finally:
            await _aclose(model)
    finally:
        await _aclose(vcs_client)


async def _report_failure(vcs_client: VCSAdapter, pr: PRDetails, error: Exception) -> None:
    log_failure(logger, f"Code review failed for PR #{pr.number}", error, repository=pr.full_name)
    try:
        await vcs_client.post_general_comment(pr.owner, pr.repo, pr.number, FAILURE_COMMENT)
    except VCSError as exc:
        log_failure(logger, "Could not post failure notice", exc, repository=pr.full_name)


class ReviewProcessor:
    """Queue handler that reviews the pull request named by each job."""

    def __init__(self, settings_provider: Callable[[], Settings] = get_settings) -> None:
        self._settings_provider = settings_provider

    async def __call__(self, job: ReviewJob) -> None:
        ctx_logger = log_with_context(logger, delivery_id=job.delivery_id, provider=job.provider,
                                      repository=job.full_name, pull_number=job.number)
        ctx_logger.info("=== PROCESSOR: Starting review processing ===")

        try:
            settings = self._settings_provider()
        except SettingsError as exc:  # pragma: no cover - configuration guard
            log_failure(logger, "Configuration missing", exc, delivery_id=job.delivery_id)
            raise ReviewProcessorError("Configuration incomplete", "load_configuration", exc) from exc

        try:
            result = await run_review(settings, job.pr_details(), provider=job.provider)
        except (ReviewError, asyncio.TimeoutError) as exc:
            raise ReviewProcessorError("Code review failed", "run_review", exc) from exc

        log_success(logger, result, delivery_id=job.delivery_id, repository=job.full_name)
