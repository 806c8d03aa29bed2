"""In-memory collaborators shared by the orchestrator and processor tests."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Sequence

from reviewbot.models.review import Comment, DiffHunk, PRDetails
from reviewbot.services.review_orchestrator import ReviewError, ReviewObserver
from reviewbot.vcs.base import VCSError


class FakeVCS:
    def __init__(
        self,
        diff: str = "",
        *,
        commit_id: str = "abc123",
        diff_error: Exception | None = None,
        commit_error: Exception | None = None,
        post_error: Exception | None = None,
    ) -> None:
        self.diff = diff
        self.commit_id = commit_id
        self.diff_error = diff_error
        self.commit_error = commit_error
        self.post_error = post_error
        self.reviews: List[Dict[str, Any]] = []
        self.general_comments: List[str] = []
        self.closed = False

    async def get_diff(self, owner: str, repo: str, number: int) -> str:
        if self.diff_error:
            raise self.diff_error
        return self.diff

    async def get_head_commit_id(self, owner: str, repo: str, number: int) -> str:
        if self.commit_error:
            raise self.commit_error
        return self.commit_id

    async def post_batch_review(
        self, owner: str, repo: str, number: int, comments: Sequence[Comment], commit_id: str
    ) -> None:
        if self.post_error:
            raise self.post_error
        self.reviews.append({"comments": list(comments), "commit_id": commit_id})

    async def post_general_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        if self.post_error:
            raise self.post_error
        self.general_comments.append(body)

    async def aclose(self) -> None:
        self.closed = True


class FakeModel:
    """Answers each prompt with ``respond(prompt)``; exceptions are raised."""

    def __init__(self, respond: Callable[[str], Any], *, delay: Callable[[str], float] | None = None) -> None:
        self._respond = respond
        self._delay = delay
        self.prompts: List[str] = []
        self.closed = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._delay:
            await asyncio.sleep(self._delay(prompt))
        result = self._respond(prompt)
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


class RecordingObserver(ReviewObserver):
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def commit_id_unavailable(self, pr: PRDetails, error: Exception) -> None:
        self.events.append(("commit_id_unavailable", str(error)))

    def hunk_failed(self, hunk: DiffHunk, error: Exception) -> None:
        self.events.append(("hunk_failed", hunk.file_path, type(error).__name__))

    def hunk_without_findings(self, hunk: DiffHunk, raw_response: str) -> None:
        self.events.append(("hunk_without_findings", hunk.file_path))

    def item_rejected(self, hunk: DiffHunk, entry: Any, error: Exception) -> None:
        self.events.append(("item_rejected", hunk.file_path))

    def item_unresolved(self, hunk, item, error) -> None:
        self.events.append(("item_unresolved", hunk.file_path, item.line_content))

    def review_submitted(self, pr: PRDetails, comment_count: int) -> None:
        self.events.append(("review_submitted", comment_count))

    def review_failed(self, pr: PRDetails, error: ReviewError) -> None:
        self.events.append(("review_failed", error.step))

    def names(self) -> List[str]:
        return [event[0] for event in self.events]


def vcs_error(message: str = "boom", status_code: int = 500) -> VCSError:
    return VCSError(message, status_code)
