import asyncio

import pytest

from reviewbot.config import LLMSettings, ReviewSettings, Settings, SettingsError
from reviewbot.models.review import PRDetails
from reviewbot.queue.models import ReviewJob
from reviewbot.services.review_orchestrator import ReviewError
from reviewbot.services.review_processor import (
    FAILURE_COMMENT,
    ReviewProcessor,
    ReviewProcessorError,
    run_review,
)

from fakes import FakeModel, FakeVCS, vcs_error

PR = PRDetails(owner="octo", repo="widgets", number=3)
DIFF = "diff --git a/a.py b/a.py\n--- a/a.py\n+++ b/a.py\n@@ -1 +1 @@\n-x = 1\n+x = 2\n"


def _settings(timeout: float = 600.0) -> Settings:
    return Settings(
        llm=LLMSettings(model_name="test-model"),
        review=ReviewSettings(timeout=timeout),
        review_prompt_file="prompt.md",
        review_prompt="{{ FilePath }}\n{{ CodeSnippet }}",
    )


def _run(settings: Settings, vcs: FakeVCS, model: FakeModel, **kwargs) -> str:
    return asyncio.run(
        run_review(
            settings,
            PR,
            vcs_factory=lambda _settings, _provider: vcs,
            model_factory=lambda _settings: model,
            **kwargs,
        )
    )


def test_successful_review_closes_clients() -> None:
    vcs = FakeVCS(DIFF)
    model = FakeModel(lambda _: '[{"line_content": "+x = 2", "message": "Why 2?"}]')

    result = _run(_settings(), vcs, model)

    assert result == "Review complete. Submitted 1 comments."
    assert vcs.closed and model.closed


def test_review_failure_posts_failure_comment() -> None:
    vcs = FakeVCS(diff_error=vcs_error("unauthorized", 401))
    model = FakeModel(lambda _: "[]")

    with pytest.raises(ReviewError):
        _run(_settings(), vcs, model)

    assert vcs.general_comments == [FAILURE_COMMENT]
    assert vcs.closed and model.closed


def test_timeout_posts_failure_comment_and_submits_nothing() -> None:
    vcs = FakeVCS(DIFF)
    model = FakeModel(lambda _: "[]", delay=lambda _: 1.0)

    with pytest.raises(asyncio.TimeoutError):
        _run(_settings(timeout=0.05), vcs, model)

    assert vcs.reviews == []
    assert vcs.general_comments == [FAILURE_COMMENT]


def test_failure_notice_errors_do_not_mask_review_error() -> None:
    vcs = FakeVCS(DIFF, post_error=vcs_error("down"))

    with pytest.raises(ReviewError) as excinfo:
        _run(_settings(), vcs, FakeModel(lambda _: "[]"))

    assert excinfo.value.step == "submit_review"


def test_unconfigured_model_is_a_processor_error() -> None:
    vcs = FakeVCS(DIFF)

    def _missing_model(_settings):
        raise SettingsError("googleai api_key is not configured")

    with pytest.raises(ReviewProcessorError) as excinfo:
        asyncio.run(run_review(_settings(), PR, vcs_factory=lambda *_: vcs, model_factory=_missing_model))

    assert excinfo.value.step == "create_model"
    assert vcs.closed


def test_unconfigured_vcs_is_a_processor_error() -> None:
    def _missing_vcs(_settings, _provider):
        raise SettingsError("github token is not configured")

    with pytest.raises(ReviewProcessorError) as excinfo:
        asyncio.run(run_review(_settings(), PR, vcs_factory=_missing_vcs))

    assert excinfo.value.step == "create_vcs_client"


def test_processor_reviews_job_with_its_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    async def fake_run_review(settings, pr, *, provider=None):
        calls.append((pr, provider))
        return "Review complete. Submitted 0 comments."

    monkeypatch.setattr("reviewbot.services.review_processor.run_review", fake_run_review)
    job = ReviewJob(delivery_id="d-1", provider="gitea", action="opened", owner="octo", repo="widgets", number=3)

    asyncio.run(ReviewProcessor(settings_provider=_settings)(job))

    assert calls == [(PR, "gitea")]


def test_processor_wraps_review_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_run_review(settings, pr, *, provider=None):
        raise ReviewError("Failed to get PR diff", "fetch_diff")

    monkeypatch.setattr("reviewbot.services.review_processor.run_review", failing_run_review)
    job = ReviewJob(delivery_id="d-2", provider="github", action="opened", owner="octo", repo="widgets", number=3)

    with pytest.raises(ReviewProcessorError) as excinfo:
        asyncio.run(ReviewProcessor(settings_provider=_settings)(job))

    assert excinfo.value.step == "run_review"
    assert isinstance(excinfo.value.original_error, ReviewError)
