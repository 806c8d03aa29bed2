"""GitHub REST client implementing :class:`reviewbot.vcs.base.VCSAdapter`."""

from __future__ import annotations

from typing import Any, Dict, Literal, Sequence

import httpx

from reviewbot.logger import get_logger, pr_logger
from reviewbot.models.review import Comment
from reviewbot.vcs.base import VCSError

logger = get_logger()

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
DIFF_ACCEPT_HEADER = "application/vnd.github.v3.diff"
DEFAULT_API_VERSION = "2022-11-28"

CommentAnchor = Literal["line", "position"]


class GitHubAPIError(VCSError):
    """Raised when a GitHub API request fails."""


class GitHubClient:
    """Token-authenticated GitHub client for pull request reviews."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        comment_anchor: CommentAnchor = "line",
        timeout: float = 30.0,
        user_agent: str = "reviewbot/1.0",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._comment_anchor = comment_anchor
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": user_agent,
                "Accept": DEFAULT_ACCEPT_HEADER,
                "X-GitHub-Api-Version": DEFAULT_API_VERSION,
            },
        )
        self._owns_client = client is None

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub API request to {url} failed: {exc}") from exc
        if response.status_code >= 400:
            detail: Any | None
            if response.content:
                try:
                    detail = response.json()
                except ValueError:
                    detail = response.text
            else:
                detail = None
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                detail,
            )
        return response

    async def get_diff(self, owner: str, repo: str, number: int) -> str:
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": DIFF_ACCEPT_HEADER},
        )
        return response.text

    async def get_head_commit_id(self, owner: str, repo: str, number: int) -> str:
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        try:
            data = response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                "GitHub API returned invalid JSON for pull request.", response.status_code, response.text
            ) from exc
        sha = (data.get("head") or {}).get("sha") if isinstance(data, dict) else None
        if not sha:
            raise GitHubAPIError("Pull request response did not include a head commit SHA.",
                                 response.status_code, data)
        return sha

    def _build_comment_payload(self, comment: Comment) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"path": comment.path, "body": comment.body}
        if self._comment_anchor == "position":
            payload["position"] = comment.github_position
        else:
            payload["line"] = comment.absolute_line
            payload["side"] = "RIGHT"
        return payload

    async def post_batch_review(
        self,
        owner: str,
        repo: str,
        number: int,
        comments: Sequence[Comment],
        commit_id: str,
    ) -> None:
        ctx_logger = pr_logger(logger, f"{owner}/{repo}", number)
        payload: Dict[str, Any] = {
            "event": "COMMENT",
            "comments": [self._build_comment_payload(comment) for comment in comments],
        }
        if commit_id:
            payload["commit_id"] = commit_id
        ctx_logger.debug(f"Creating review with {len(comments)} comment(s), anchor={self._comment_anchor}")
        await self._request("POST", f"/repos/{owner}/{repo}/pulls/{number}/reviews", json=payload)

    async def post_general_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
