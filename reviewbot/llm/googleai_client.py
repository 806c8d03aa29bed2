"""Google AI (Gemini) generateContent backend."""

from __future__ import annotations

from typing import Any, Dict, List

import httpx

from reviewbot.llm.base import ModelInvocationError, raise_for_status
from reviewbot.logger import get_logger, log_timing

logger = get_logger()

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _extract_text(payload: Dict[str, Any]) -> str:
    candidates = payload.get("candidates") or []
    if not candidates:
        feedback = payload.get("promptFeedback")
        raise ModelInvocationError(f"Model returned no candidates (promptFeedback={feedback})")
    parts: List[Dict[str, Any]] = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GoogleAIClient:
    def __init__(
        self,
        api_key: str,
        model_name: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model_name = model_name.removeprefix("googleai/")
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "X-Goog-Api-Key": api_key,
                "Content-Type": "application/json",
            },
        )
        self._owns_client = client is None

    async def generate(self, prompt: str) -> str:
        request_body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        with log_timing(logger, "googleai_generate", model=self._model_name):
            try:
                response = await self._client.post(
                    f"/models/{self._model_name}:generateContent", json=request_body
                )
            except httpx.HTTPError as exc:
                raise ModelInvocationError(f"Failed to generate LLM response: {exc}") from exc
        raise_for_status("generate LLM response", response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ModelInvocationError("Model returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise ModelInvocationError(f"Unexpected generateContent payload: {payload!r}")
        return _extract_text(payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
