"""Gitea REST client implementing :class:`reviewbot.vcs.base.VCSAdapter`.

Review comments are posted to the pull request's conversation thread, one per
finding, quoting the file and absolute line they refer to.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from reviewbot.logger import get_logger, pr_logger
from reviewbot.models.review import Comment
from reviewbot.vcs.base import VCSError

logger = get_logger()


class GiteaAPIError(VCSError):
    """Raised when a Gitea API request fails."""


def format_review_comment(comment: Comment) -> str:
    return f"**Review for `{comment.path}` (Line {comment.absolute_line}):**\n\n> {comment.body}"


class GiteaClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        # base_url already includes the /api/v1 prefix.
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "Authorization": f"token {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        self._owns_client = client is None

    async def _request(self, method: str, url: str, *, json: Any | None = None) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise GiteaAPIError(f"Gitea API request to {url} failed: {exc}") from exc
        if response.status_code >= 300:
            raise GiteaAPIError(
                f"Gitea API returned status {response.status_code} for {method} {url}: {response.text}",
                response.status_code,
                response.text,
            )
        return response

    async def get_diff(self, owner: str, repo: str, number: int) -> str:
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}.diff")
        return response.text

    async def get_head_commit_id(self, owner: str, repo: str, number: int) -> str:
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        try:
            data = response.json()
        except ValueError as exc:
            raise GiteaAPIError("Gitea API returned invalid JSON for pull request.",
                                response.status_code, response.text) from exc
        sha = (data.get("head") or {}).get("sha") if isinstance(data, dict) else None
        if not sha:
            raise GiteaAPIError("Pull request response did not include a head commit SHA.",
                                response.status_code, data)
        return sha

    async def post_batch_review(
        self,
        owner: str,
        repo: str,
        number: int,
        comments: Sequence[Comment],
        commit_id: str,
    ) -> None:
        ctx_logger = pr_logger(logger, f"{owner}/{repo}", number)
        failures = 0
        for comment in comments:
            try:
                await self.post_general_comment(owner, repo, number, format_review_comment(comment))
            except GiteaAPIError as exc:
                failures += 1
                ctx_logger.warning(f"Failed to post comment for {comment.path}:{comment.absolute_line}: {exc}")

        if comments and failures == len(comments):
            raise GiteaAPIError(f"Failed to post all {failures} review comment(s) to Gitea PR #{number}.")
        ctx_logger.info(f"Posted {len(comments) - failures}/{len(comments)} review comment(s)")

    async def post_general_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
