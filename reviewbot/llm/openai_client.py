"""OpenAI-compatible chat completions backend."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from reviewbot.llm.base import ModelInvocationError, raise_for_status
from reviewbot.logger import get_logger, log_timing

logger = get_logger()

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    def __init__(
        self,
        api_key: str,
        model_name: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model_name = model_name
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )
        self._owns_client = client is None

    async def generate(self, prompt: str) -> str:
        request_body: Dict[str, Any] = {
            "model": self._model_name,
            "messages": [{"role": "user", "content": prompt}],
        }
        with log_timing(logger, "openai_generate", model=self._model_name):
            try:
                response = await self._client.post("/chat/completions", json=request_body)
            except httpx.HTTPError as exc:
                raise ModelInvocationError(f"Failed to generate LLM response: {exc}") from exc
        raise_for_status("generate LLM response", response)

        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ModelInvocationError(f"Unexpected chat completion payload: {response.text[:500]}") from exc
        return content or ""

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
