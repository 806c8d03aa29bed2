#!/usr/bin/env python3
"""Review a single pull request from CI (e.g. a GitHub Actions job)."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Mapping, Sequence

from reviewbot.config import SettingsError, load_settings
from reviewbot.logger import get_logger
from reviewbot.models.review import PRDetails
from reviewbot.services.review_orchestrator import ReviewError
from reviewbot.services.review_processor import ReviewProcessorError, run_review

logger = get_logger()


def pr_details_from_env(
    env: Mapping[str, str],
    *,
    repository: str | None = None,
    pr_number: str | int | None = None,
) -> PRDetails:
    """Resolve the pull request identity from arguments, falling back to the environment.

    The repository comes from ``GITHUB_REPOSITORY`` or ``REPO_OWNER``/``REPO_NAME``,
    the number from ``PR_NUMBER``.
    """

    repo_slug = repository or env.get("GITHUB_REPOSITORY")
    if not repo_slug:
        repo_owner = env.get("REPO_OWNER")
        repo_name = env.get("REPO_NAME")
        if not repo_owner or not repo_name:
            raise ValueError("GITHUB_REPOSITORY (or REPO_OWNER/REPO_NAME) env var not set")
        repo_slug = f"{repo_owner}/{repo_name}"

    parts = repo_slug.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"invalid GITHUB_REPOSITORY format: {repo_slug}")

    raw_number = pr_number if pr_number is not None else env.get("PR_NUMBER")
    if raw_number in (None, ""):
        raise ValueError("PR_NUMBER env var not set")
    try:
        number = int(raw_number)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid PR_NUMBER: {raw_number!r}") from exc
    if number <= 0:
        raise ValueError(f"invalid PR_NUMBER: {raw_number!r}")

    return PRDetails(owner=parts[0], repo=parts[1], number=number)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run an AI review on one pull request.")
    parser.add_argument("--config", help="Path to config.yaml (defaults to $REVIEWBOT_CONFIG or config/config.yaml)")
    parser.add_argument("--repository", help="owner/repo (defaults to $GITHUB_REPOSITORY)")
    parser.add_argument("--pr-number", help="Pull request number (defaults to $PR_NUMBER)")
    parser.add_argument("--provider", choices=["github", "gitea"], help="Override vcs.provider from the config")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except SettingsError as exc:
        logger.error(f"Failed to load config: {exc}")
        return 1

    try:
        pr = pr_details_from_env(os.environ, repository=args.repository, pr_number=args.pr_number)
    except ValueError as exc:
        logger.error(f"Failed to get PR details: {exc}")
        return 1

    try:
        result = asyncio.run(run_review(settings, pr, provider=args.provider))
    except ReviewProcessorError as exc:
        logger.error(f"Failed to set up review: {exc} ({exc.original_error})")
        return 1
    except (ReviewError, asyncio.TimeoutError) as exc:
        logger.error(f"Code review process failed: {exc!r}")
        return 1

    logger.info(f"Process finished successfully: {result}")
    print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
