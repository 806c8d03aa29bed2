"""Build the hosting-provider client named in the configuration."""

from __future__ import annotations

from typing import Callable, Dict

from reviewbot.config import Settings, SettingsError
from reviewbot.vcs.base import VCSAdapter
from reviewbot.vcs.gitea_client import GiteaClient
from reviewbot.vcs.github_client import GitHubClient

VCSBuilder = Callable[[Settings], VCSAdapter]


def _build_github(settings: Settings) -> GitHubClient:
    github = settings.vcs.github
    if not github.token:
        raise SettingsError("github token is not configured")
    return GitHubClient(
        github.token,
        base_url=settings.normalized_github_base_url,
        comment_anchor=github.comment_anchor,
    )


def _build_gitea(settings: Settings) -> GiteaClient:
    gitea = settings.vcs.gitea
    if not gitea.token:
        raise SettingsError("gitea token is not configured")
    base_url = settings.normalized_gitea_base_url
    if not base_url:
        raise SettingsError("gitea base_url is not configured")
    return GiteaClient(base_url, gitea.token)


VCS_BUILDERS: Dict[str, VCSBuilder] = {
    "github": _build_github,
    "gitea": _build_gitea,
}


def build_vcs_client(settings: Settings, provider: str | None = None) -> VCSAdapter:
    """Create the client for ``provider`` (defaults to ``vcs.provider`` from settings)."""

    name = (provider or settings.vcs.provider).lower()
    builder = VCS_BUILDERS.get(name)
    if builder is None:
        raise SettingsError(f"unsupported VCS provider: {name}")
    return builder(settings)
