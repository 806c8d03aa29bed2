"""Webhook signature helpers."""

from __future__ import annotations

import hashlib
import hmac


def _hex_digest(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def build_github_signature(secret: str, payload: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` value GitHub sends for ``payload``."""

    return f"sha256={_hex_digest(secret, payload)}"


def build_gitea_signature(secret: str, payload: bytes) -> str:
    """Return the ``X-Gitea-Signature`` value (bare hex digest)."""

    return _hex_digest(secret, payload)


def verify_github_signature(secret: str, payload: bytes, raw_signature: str | None) -> bool:
    if not raw_signature:
        return False
    return hmac.compare_digest(build_github_signature(secret, payload), raw_signature)


def verify_gitea_signature(secret: str, payload: bytes, raw_signature: str | None) -> bool:
    if not raw_signature:
        return False
    return hmac.compare_digest(build_gitea_signature(secret, payload), raw_signature.strip())
