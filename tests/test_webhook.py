import json
from typing import List

import pytest
from fastapi.testclient import TestClient

from reviewbot.main import app
from reviewbot.queue.models import ReviewJob
from reviewbot.utils.security import build_gitea_signature, build_github_signature
from reviewbot.webhook import reset_delivery_cache

SECRET = "webhook-secret"


def _github_payload(action: str = "opened", state: str = "open") -> dict:
    return {
        "action": action,
        "number": 12,
        "pull_request": {
            "number": 12,
            "state": state,
            "base": {"repo": {"name": "widgets", "owner": {"login": "octo"}}},
        },
        "repository": {"name": "widgets", "owner": {"login": "octo"}},
    }


def _gitea_payload(action: str = "opened") -> dict:
    return {
        "action": action,
        "number": 4,
        "pull_request": {"number": 4, "state": "open"},
        "repository": {"name": "widgets", "owner": {"login": "octo"}},
    }


@pytest.fixture
def queued(monkeypatch: pytest.MonkeyPatch) -> List[ReviewJob]:
    jobs: List[ReviewJob] = []

    async def fake_enqueue(job: ReviewJob) -> None:
        jobs.append(job)

    monkeypatch.setattr("reviewbot.webhook.enqueue_review_job", fake_enqueue)
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", SECRET)
    monkeypatch.setenv("GITEA_WEBHOOK_SECRET", SECRET)
    reset_delivery_cache()
    return jobs


def _post_github(client: TestClient, payload: dict, *, event: str = "pull_request",
                 delivery: str = "gh-1", signature: str | None = None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": delivery,
        "X-Hub-Signature-256": signature or build_github_signature(SECRET, body),
        "Content-Type": "application/json",
    }
    return client.post("/api/github/webhook", content=body, headers=headers)


def _post_gitea(client: TestClient, payload: dict, *, event: str = "pull_request", delivery: str = "gt-1"):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "X-Gitea-Event": event,
        "X-Gitea-Delivery": delivery,
        "X-Gitea-Signature": build_gitea_signature(SECRET, body),
        "Content-Type": "application/json",
    }
    return client.post("/api/gitea/webhook", content=body, headers=headers)


def test_root_and_health() -> None:
    client = TestClient(app)

    assert client.get("/").text == "AI Code Reviewer Bot is running."
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["pending_jobs"] == 0


def test_github_pull_request_is_queued(queued: List[ReviewJob]) -> None:
    response = _post_github(TestClient(app), _github_payload())

    assert response.status_code == 200
    assert response.json() == {"status": "accepted"}
    assert len(queued) == 1
    job = queued[0]
    assert (job.provider, job.owner, job.repo, job.number, job.delivery_id) == ("github", "octo", "widgets", 12, "gh-1")


def test_invalid_signature_is_rejected(queued: List[ReviewJob]) -> None:
    response = _post_github(TestClient(app), _github_payload(), signature="sha256=00")

    assert response.status_code == 401
    assert queued == []


def test_missing_secret_is_a_server_error(queued: List[ReviewJob], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_WEBHOOK_SECRET")

    response = _post_github(TestClient(app), _github_payload())

    assert response.status_code == 500


@pytest.mark.parametrize(
    "payload, event",
    [
        (_github_payload(action="closed"), "pull_request"),
        (_github_payload(state="closed", action="synchronize"), "pull_request"),
        (_github_payload(), "push"),
    ],
)
def test_non_actionable_events_are_ignored(queued: List[ReviewJob], payload: dict, event: str) -> None:
    response = _post_github(TestClient(app), payload, event=event)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert queued == []


def test_duplicate_delivery_is_ignored(queued: List[ReviewJob]) -> None:
    client = TestClient(app)

    _post_github(client, _github_payload(), delivery="same")
    response = _post_github(client, _github_payload(), delivery="same")

    assert response.json() == {"status": "ignored", "reason": "duplicate"}
    assert len(queued) == 1


def test_payload_without_repository_is_bad_request(queued: List[ReviewJob]) -> None:
    payload = {"action": "opened", "pull_request": {"number": 1, "state": "open"}}

    response = _post_github(TestClient(app), payload)

    assert response.status_code == 400


def test_gitea_synchronized_is_queued(queued: List[ReviewJob]) -> None:
    response = _post_gitea(TestClient(app), _gitea_payload("synchronized"), event="pull_request_sync")

    assert response.json() == {"status": "accepted"}
    assert (queued[0].provider, queued[0].number) == ("gitea", 4)


def test_gitea_signature_is_checked(queued: List[ReviewJob]) -> None:
    body = json.dumps(_gitea_payload()).encode("utf-8")
    headers = {"X-Gitea-Event": "pull_request", "X-Gitea-Signature": build_github_signature(SECRET, body)}

    response = TestClient(app).post("/api/gitea/webhook", content=body, headers=headers)

    assert response.status_code == 401
