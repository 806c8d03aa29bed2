"""End-to-end review of one pull request: fetch, split, analyze, locate, submit."""

from __future__ import annotations

import asyncio
import json
from typing import Any, List, Sequence

from pydantic import ValidationError

from reviewbot.llm.base import ModelInvoker
from reviewbot.logger import get_logger, log_failure, log_success, log_with_context, pr_logger
from reviewbot.models.review import Comment, DiffHunk, PRDetails, ReviewItem
from reviewbot.services.diff_splitter import split_diff
from reviewbot.services.locator import LineNotFoundError, resolve_location
from reviewbot.services.prompt import render_review_prompt
from reviewbot.services.sanitizer import sanitize_json_array
from reviewbot.vcs.base import VCSAdapter

logger = get_logger()

NO_CHANGES_MESSAGE = "No reviewable changes found."
NO_ISSUES_COMMENT = "✅ AI Review Complete: No issues found. Great work!"


class ReviewError(RuntimeError):
    """Raised when a review run cannot complete (diff fetch or submission failed)."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error


class ResponseParseError(ValueError):
    """Raised when a model response cannot be turned into review items."""


class ReviewObserver:
    """Receives pipeline events. The base class ignores them all."""

    def review_started(self, pr: PRDetails) -> None:
        pass

    def diff_fetched(self, pr: PRDetails, hunk_count: int) -> None:
        pass

    def commit_id_unavailable(self, pr: PRDetails, error: Exception) -> None:
        pass

    def hunk_failed(self, hunk: DiffHunk, error: Exception) -> None:
        pass

    def hunk_without_findings(self, hunk: DiffHunk, raw_response: str) -> None:
        pass

    def item_rejected(self, hunk: DiffHunk, entry: Any, error: Exception) -> None:
        pass

    def item_unresolved(self, hunk: DiffHunk, item: ReviewItem, error: LineNotFoundError) -> None:
        pass

    def review_submitted(self, pr: PRDetails, comment_count: int) -> None:
        pass

    def review_failed(self, pr: PRDetails, error: ReviewError) -> None:
        pass


class LoggingReviewObserver(ReviewObserver):
    """Reports pipeline events through loguru."""

    def review_started(self, pr: PRDetails) -> None:
        pr_logger(logger, pr.full_name, pr.number).info(
            f"Starting review for PR #{pr.number} in {pr.full_name}"
        )

    def diff_fetched(self, pr: PRDetails, hunk_count: int) -> None:
        ctx_logger = pr_logger(logger, pr.full_name, pr.number)
        if hunk_count:
            ctx_logger.info(f"Parsed diff into {hunk_count} hunk(s)")
        else:
            ctx_logger.info(NO_CHANGES_MESSAGE)

    def commit_id_unavailable(self, pr: PRDetails, error: Exception) -> None:
        pr_logger(logger, pr.full_name, pr.number).warning(
            f"Could not get PR head commit ID, continuing without it: {error}"
        )

    def hunk_failed(self, hunk: DiffHunk, error: Exception) -> None:
        log_with_context(logger, file_path=hunk.file_path).error(
            f"Error analyzing hunk (start line {hunk.start_line_new}): {error}"
        )

    def hunk_without_findings(self, hunk: DiffHunk, raw_response: str) -> None:
        log_with_context(logger, file_path=hunk.file_path).debug(
            f"No JSON array in model response, treating as no findings. Raw response: {raw_response!r}"
        )

    def item_rejected(self, hunk: DiffHunk, entry: Any, error: Exception) -> None:
        log_with_context(logger, file_path=hunk.file_path).warning(
            f"Dropping malformed review item {entry!r}: {error}"
        )

    def item_unresolved(self, hunk: DiffHunk, item: ReviewItem, error: LineNotFoundError) -> None:
        log_with_context(logger, file_path=hunk.file_path).info(
            f"Could not locate commented line, dropping comment: {error}"
        )

    def review_submitted(self, pr: PRDetails, comment_count: int) -> None:
        if comment_count:
            message = f"Submitted a review with {comment_count} comment(s)"
        else:
            message = "No comments to post, submitted a general comment"
        log_success(logger, message, repository=pr.full_name, pull_number=pr.number)

    def review_failed(self, pr: PRDetails, error: ReviewError) -> None:
        log_failure(logger, f"Review failed at step '{error.step}'", error.original_error or error,
                    repository=pr.full_name, pull_number=pr.number)


def parse_review_items(sanitized: str, hunk: DiffHunk, observer: ReviewObserver) -> List[ReviewItem]:
    try:
        data = json.loads(sanitized)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Failed to parse model JSON response {sanitized!r}: {exc}") from exc
    if not isinstance(data, list):
        raise ResponseParseError(f"Expected a JSON array, got {type(data).__name__}")

    items: List[ReviewItem] = []
    for entry in data:
        try:
            items.append(ReviewItem.model_validate(entry))
        except ValidationError as exc:
            observer.item_rejected(hunk, entry, exc)
    return items


class ReviewOrchestrator:
    """Runs one review per call to :meth:`run`; holds no per-run state."""

    def __init__(
        self,
        vcs_client: VCSAdapter,
        model: ModelInvoker,
        prompt_template: str,
        *,
        observer: ReviewObserver | None = None,
        max_concurrency: int = 1,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._vcs = vcs_client
        self._model = model
        self._prompt_template = prompt_template
        self._observer = observer or LoggingReviewObserver()
        self._max_concurrency = max_concurrency

    async def run(self, pr: PRDetails) -> str:
        """Review ``pr`` and return a one-line summary.

        Raises :class:`ReviewError` only when the diff cannot be fetched or the final
        submission fails. Cancellation aborts the run without submitting anything.
        The head commit id is fetched only once the diff has at least one hunk, so a
        run with nothing to review makes a single provider call.
        """

        self._observer.review_started(pr)

        try:
            diff_text = await self._vcs.get_diff(pr.owner, pr.repo, pr.number)
        except Exception as exc:
            error = ReviewError(f"Failed to get PR diff: {exc}", "fetch_diff", exc)
            self._observer.review_failed(pr, error)
            raise error from exc

        hunks = split_diff(diff_text)
        self._observer.diff_fetched(pr, len(hunks))
        if not hunks:
            return NO_CHANGES_MESSAGE

        try:
            commit_id = await self._vcs.get_head_commit_id(pr.owner, pr.repo, pr.number)
        except Exception as exc:
            self._observer.commit_id_unavailable(pr, exc)
            commit_id = ""

        comments = await self._collect_comments(hunks)
        await self._submit(pr, comments, commit_id)
        return f"Review complete. Submitted {len(comments)} comments."

    async def _collect_comments(self, hunks: Sequence[DiffHunk]) -> List[Comment]:
        if self._max_concurrency == 1:
            per_hunk = [await self._review_hunk(hunk) for hunk in hunks]
        else:
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def _bounded(hunk: DiffHunk) -> List[Comment]:
                async with semaphore:
                    return await self._review_hunk(hunk)

            # gather keeps argument order, so comments stay in hunk order.
            per_hunk = await asyncio.gather(*(_bounded(hunk) for hunk in hunks))
        return [comment for hunk_comments in per_hunk for comment in hunk_comments]

    async def _review_hunk(self, hunk: DiffHunk) -> List[Comment]:
        try:
            items = await self._analyze_hunk(hunk)
        except Exception as exc:
            self._observer.hunk_failed(hunk, exc)
            return []

        comments: List[Comment] = []
        for item in items:
            try:
                hunk_position, absolute_line = resolve_location(hunk, item.line_content)
            except LineNotFoundError as exc:
                self._observer.item_unresolved(hunk, item, exc)
                continue
            comments.append(
                Comment(
                    path=hunk.file_path,
                    body=item.message,
                    hunk_position=hunk_position,
                    absolute_line=absolute_line,
                    diff_position=hunk.position_offset + hunk_position - 1,
                )
            )
        return comments

    async def _analyze_hunk(self, hunk: DiffHunk) -> List[ReviewItem]:
        prompt = render_review_prompt(self._prompt_template, hunk)
        response_text = await self._model.generate(prompt)
        if not response_text or not response_text.strip():
            raise ResponseParseError("model returned an empty response")

        sanitized = sanitize_json_array(response_text)
        if not sanitized:
            self._observer.hunk_without_findings(hunk, response_text)
            return []
        return parse_review_items(sanitized, hunk, self._observer)

    async def _submit(self, pr: PRDetails, comments: List[Comment], commit_id: str) -> None:
        try:
            if comments:
                await self._vcs.post_batch_review(pr.owner, pr.repo, pr.number, comments, commit_id)
            else:
                await self._vcs.post_general_comment(pr.owner, pr.repo, pr.number, NO_ISSUES_COMMENT)
        except Exception as exc:
            error = ReviewError(f"Failed to post review: {exc}", "submit_review", exc)
            self._observer.review_failed(pr, error)
            raise error from exc
        self._observer.review_submitted(pr, len(comments))
