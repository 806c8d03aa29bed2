"""Contract for text-generation backends."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx


class ModelInvocationError(RuntimeError):
    """Raised when the model backend fails or returns an unusable payload."""


@runtime_checkable
class ModelInvoker(Protocol):
    async def generate(self, prompt: str) -> str: ...


def raise_for_status(action: str, response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    detail: Any | None
    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    raise ModelInvocationError(f"Failed to {action}: status={response.status_code}, detail={detail}")
