"""Build the text-generation backend named in the configuration."""

from __future__ import annotations

from reviewbot.config import Settings, SettingsError
from reviewbot.llm.base import ModelInvoker
from reviewbot.llm.googleai_client import DEFAULT_BASE_URL as GOOGLEAI_BASE_URL, GoogleAIClient
from reviewbot.llm.openai_client import DEFAULT_BASE_URL as OPENAI_BASE_URL, OpenAIClient

GOOGLEAI = "googleai"
OPENAI = "openai"


def build_model_invoker(settings: Settings) -> ModelInvoker:
    llm = settings.llm
    provider = llm.provider.lower()
    if provider == GOOGLEAI:
        if not llm.googleai.api_key:
            raise SettingsError("googleai api_key is not configured")
        return GoogleAIClient(
            llm.googleai.api_key,
            llm.model_name,
            base_url=str(llm.googleai.base_url or GOOGLEAI_BASE_URL),
            timeout=llm.timeout,
        )
    if provider == OPENAI:
        if not llm.openai.api_key:
            raise SettingsError("openai api_key is not configured")
        return OpenAIClient(
            llm.openai.api_key,
            llm.model_name,
            base_url=str(llm.openai.base_url or OPENAI_BASE_URL),
            timeout=llm.timeout,
        )
    raise SettingsError(f"unsupported LLM provider in config: {llm.provider}")
