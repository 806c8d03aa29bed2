"""Contract shared by every hosting-provider client."""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from reviewbot.models.review import Comment


class VCSError(RuntimeError):
    """Raised when a hosting provider request fails."""

    def __init__(self, message: str, status_code: int = 0, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


@runtime_checkable
class VCSAdapter(Protocol):
    """Diff source and review sink for one hosting backend.

    New backends implement these four coroutines and register in
    :mod:`reviewbot.vcs.factory`.
    """

    async def get_diff(self, owner: str, repo: str, number: int) -> str: ...

    async def get_head_commit_id(self, owner: str, repo: str, number: int) -> str: ...

    async def post_batch_review(
        self,
        owner: str,
        repo: str,
        number: int,
        comments: Sequence[Comment],
        commit_id: str,
    ) -> None: ...

    async def post_general_comment(self, owner: str, repo: str, number: int, body: str) -> None: ...
