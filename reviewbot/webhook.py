"""GitHub and Gitea pull request webhook ingestion."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from reviewbot.config import ServerSettings, SettingsError
from reviewbot.dependencies import server_settings_dependency
from reviewbot.logger import get_logger, log_failure, log_success, log_with_context
from reviewbot.queue import enqueue_review_job
from reviewbot.queue.models import ReviewJob
from reviewbot.utils.security import verify_gitea_signature, verify_github_signature

router = APIRouter()

logger = get_logger()

DELIVERY_TTL_SECONDS = 60 * 60  # retain delivery IDs for one hour
SUPPORTED_PR_ACTIONS = frozenset({"opened", "synchronize", "reopened"})
# Gitea reports pushes to an open pull request as "synchronized".
GITEA_PR_ACTIONS = SUPPORTED_PR_ACTIONS | {"synchronized"}
GITEA_PR_EVENTS = frozenset({"pull_request", "pull_request_sync"})
_delivery_cache: Dict[str, float] = {}


class IgnoreEventError(RuntimeError):
    """Raised when a webhook event should be acknowledged but not processed."""


def _prune_delivery_cache(now: float) -> None:
    expiry_threshold = now - DELIVERY_TTL_SECONDS
    expired = [key for key, timestamp in _delivery_cache.items() if timestamp < expiry_threshold]
    for key in expired:
        _delivery_cache.pop(key, None)


def _is_duplicate(delivery_key: str, now: float) -> bool:
    _prune_delivery_cache(now)
    return delivery_key in _delivery_cache


def reset_delivery_cache() -> None:
    """Forget seen delivery IDs (primarily for tests)."""
    _delivery_cache.clear()


def _check_action(action: Any, supported: frozenset[str] = SUPPORTED_PR_ACTIONS) -> str:
    if action not in supported:
        raise IgnoreEventError(f"Pull request action '{action}' not actionable.")
    return action


def build_github_job(delivery_id: str, event: str | None, payload: Dict[str, Any]) -> ReviewJob:
    if event != "pull_request":
        raise IgnoreEventError(f"Event '{event}' is not handled.")
    action = _check_action(payload.get("action"))

    pull_request = payload.get("pull_request") or {}
    if pull_request.get("state", "open") != "open":
        raise IgnoreEventError(f"Pull request state is '{pull_request.get('state')}'.")

    repository = (pull_request.get("base") or {}).get("repo") or payload.get("repository") or {}
    owner = (repository.get("owner") or {}).get("login")
    name = repository.get("name")
    number = pull_request.get("number") or payload.get("number")
    if not owner or not name:
        raise ValueError("Pull request event missing repository metadata.")
    if not number:
        raise ValueError("Pull request payload missing number.")

    return ReviewJob(delivery_id=delivery_id, provider="github", action=action,
                     owner=owner, repo=name, number=number)


def build_gitea_job(delivery_id: str, event: str | None, payload: Dict[str, Any]) -> ReviewJob:
    if event is not None and event not in GITEA_PR_EVENTS:
        raise IgnoreEventError(f"Event '{event}' is not handled.")
    action = _check_action(payload.get("action"), GITEA_PR_ACTIONS)

    repository = payload.get("repository") or {}
    owner = (repository.get("owner") or {}).get("login")
    name = repository.get("name")
    number = payload.get("number") or (payload.get("pull_request") or {}).get("number")
    if not owner or not name:
        raise ValueError("Pull request event missing repository metadata.")
    if not number:
        raise ValueError("Pull request payload missing number.")

    return ReviewJob(delivery_id=delivery_id, provider="gitea", action=action,
                     owner=owner, repo=name, number=number)


async def _receive(
    request: Request,
    settings: ServerSettings,
    *,
    provider: str,
    delivery_header: str,
    event_header: str,
    signature_header: str,
    verify: Callable[[str, bytes, str | None], bool],
    build_job: Callable[[str, str | None, Dict[str, Any]], ReviewJob],
) -> Dict[str, str]:
    start_time = time.perf_counter()
    delivery_id = request.headers.get(delivery_header)
    event = request.headers.get(event_header)
    ctx_logger = log_with_context(logger, provider=provider, delivery_id=delivery_id, event_type=event)
    ctx_logger.info("=== WEBHOOK RECEIVED ===")

    try:
        secret = settings.require_webhook_secret(provider)
    except SettingsError as exc:
        log_failure(logger, "Webhook secret not configured", exc, provider=provider)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    raw_body = await request.body()
    if not verify(secret, raw_body, request.headers.get(signature_header)):
        log_failure(logger, "Webhook signature verification failed", provider=provider, delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        log_failure(logger, "Invalid JSON payload", exc, provider=provider, delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    now = time.time()
    delivery_key = f"{provider}:{delivery_id}" if delivery_id else None
    if delivery_key and _is_duplicate(delivery_key, now):
        ctx_logger.info("Duplicate delivery ignored")
        return {"status": "ignored", "reason": "duplicate"}

    try:
        job = build_job(delivery_id or f"{provider}-{int(now * 1000)}", event, payload)
    except IgnoreEventError as exc:
        ctx_logger.info(f"Webhook ignored: {exc}")
        return {"status": "ignored", "reason": str(exc)}
    except (ValueError, ValidationError) as exc:
        log_failure(logger, f"Invalid payload structure: {exc}", exc, provider=provider, delivery_id=delivery_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    await enqueue_review_job(job)
    if delivery_key:
        _delivery_cache[delivery_key] = now

    processing_time = time.perf_counter() - start_time
    log_success(logger, f"Webhook accepted for {job.full_name}#{job.number} (processed in {processing_time:.3f}s)",
                provider=provider, delivery_id=delivery_id)
    return {"status": "accepted"}


@router.post("/api/github/webhook", summary="Receive GitHub pull request webhooks")
async def receive_github_webhook(
    request: Request,
    settings: ServerSettings = Depends(server_settings_dependency),
) -> Dict[str, str]:
    return await _receive(
        request,
        settings,
        provider="github",
        delivery_header="X-GitHub-Delivery",
        event_header="X-GitHub-Event",
        signature_header="X-Hub-Signature-256",
        verify=verify_github_signature,
        build_job=build_github_job,
    )


@router.post("/api/gitea/webhook", summary="Receive Gitea pull request webhooks")
async def receive_gitea_webhook(
    request: Request,
    settings: ServerSettings = Depends(server_settings_dependency),
) -> Dict[str, str]:
    return await _receive(
        request,
        settings,
        provider="gitea",
        delivery_header="X-Gitea-Delivery",
        event_header="X-Gitea-Event",
        signature_header="X-Gitea-Signature",
        verify=verify_gitea_signature,
        build_job=build_gitea_job,
    )
