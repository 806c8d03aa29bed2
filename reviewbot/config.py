"""Application configuration: YAML file, environment expansion and prompt assembly."""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Final, Literal

import yaml
from dotenv import load_dotenv
from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError, field_validator

BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_PATH_ENV = "REVIEWBOT_CONFIG"
DEFAULT_CONFIG_PATH = BASE_DIR / "config" / "config.yaml"

load_dotenv(dotenv_path=BASE_DIR / ".env")

# Only ${VAR} is expanded; a bare $word is left as written.
_ENV_VAR_PATTERN: Final = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)\}")


class SettingsError(RuntimeError):
    """Raised when application configuration is invalid or incomplete."""


def _blank_to_none(value: Any) -> Any:
    # An unset ${VAR} expands to an empty string.
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_blank(value: Any) -> Any:
    # "key: ${UNSET}" loads as a YAML null.
    return "" if value is None else value


class GitHubSettings(BaseModel):
    token: str = ""
    base_url: AnyHttpUrl = "https://api.github.com"
    comment_anchor: Literal["line", "position"] = "line"

    @field_validator("token", mode="before")
    @classmethod
    def blank_token(cls, value: Any) -> Any:
        return _none_to_blank(value)

    @field_validator("base_url", mode="before")
    @classmethod
    def default_base_url(cls, value: Any) -> Any:
        return _blank_to_none(value) or "https://api.github.com"


class GiteaSettings(BaseModel):
    base_url: AnyHttpUrl | None = None
    token: str = ""

    @field_validator("base_url", mode="before")
    @classmethod
    def blank_base_url(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("token", mode="before")
    @classmethod
    def blank_token(cls, value: Any) -> Any:
        return _none_to_blank(value)


class VCSSettings(BaseModel):
    provider: str = "github"
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    gitea: GiteaSettings = Field(default_factory=GiteaSettings)


class APIKeySettings(BaseModel):
    api_key: str = ""
    base_url: AnyHttpUrl | None = None

    @field_validator("base_url", mode="before")
    @classmethod
    def blank_base_url(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("api_key", mode="before")
    @classmethod
    def blank_api_key(cls, value: Any) -> Any:
        return _none_to_blank(value)


class LLMSettings(BaseModel):
    provider: str = "googleai"
    model_name: str
    timeout: float = 120.0
    googleai: APIKeySettings = Field(default_factory=APIKeySettings)
    openai: APIKeySettings = Field(default_factory=APIKeySettings)


class ReviewSettings(BaseModel):
    max_concurrency: int = Field(default=1, ge=1)
    timeout: float = Field(default=600.0, gt=0)


class Settings(BaseModel):
    """Runtime settings loaded from the YAML config file."""

    vcs: VCSSettings = Field(default_factory=VCSSettings)
    llm: LLMSettings
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    review_prompt_file: str
    # Holds the fully assembled template once loaded.
    review_prompt: str = ""

    @property
    def normalized_github_base_url(self) -> str:
        return str(self.vcs.github.base_url).rstrip("/")

    @property
    def normalized_gitea_base_url(self) -> str | None:
        if self.vcs.gitea.base_url is None:
            return None
        return str(self.vcs.gitea.base_url).rstrip("/")


class ServerSettings(BaseModel):
    """Webhook server settings, read straight from the environment."""

    host: str = "0.0.0.0"
    port: int = 8080
    github_webhook_secret: str | None = None
    gitea_webhook_secret: str | None = None

    def require_webhook_secret(self, provider: str) -> str:
        secret = self.github_webhook_secret if provider == "github" else self.gitea_webhook_secret
        if not secret:
            raise SettingsError(
                f"{provider.upper()}_WEBHOOK_SECRET environment variable is required "
                f"to accept {provider} webhooks."
            )
        return secret


def expand_env(text: str) -> str:
    """Expand ``${VAR}`` references; unset variables become empty strings."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group("name")
        return os.environ.get(name, "")

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _resolve_config_path(explicit: str | Path | None) -> Path:
    if explicit is not None:
        return Path(explicit).expanduser()
    env_value = os.getenv(CONFIG_PATH_ENV)
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_CONFIG_PATH


def _read_prompt_file(raw_path: str, config_dir: Path) -> str:
    prompt_path = Path(raw_path).expanduser()
    if not prompt_path.is_absolute() and not prompt_path.exists():
        # Relative paths fall back to the config directory, then the project root.
        candidates = [config_dir / prompt_path, BASE_DIR / prompt_path]
        prompt_path = next((path for path in candidates if path.exists()), prompt_path)
    try:
        return prompt_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Failed to read review prompt file '{raw_path}': {exc}") from exc


def load_settings(path: str | Path | None = None) -> Settings:
    """Read the YAML config, expand environment variables and assemble the review prompt."""

    config_path = _resolve_config_path(path)
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Failed to read config file '{config_path}': {exc}") from exc

    try:
        data: Any = yaml.safe_load(expand_env(raw_text)) or {}
    except yaml.YAMLError as exc:
        raise SettingsError(f"Config file '{config_path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"Config file '{config_path}' must contain a mapping at the top level.")

    if not data.get("review_prompt_file"):
        raise SettingsError("'review_prompt_file' must be specified in the config file.")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise SettingsError(f"Invalid application configuration: {exc}") from exc

    base_prompt = _read_prompt_file(settings.review_prompt_file, config_path.parent)
    assembled = f"{base_prompt}\n\n{settings.review_prompt or ''}"
    return settings.model_copy(update={"review_prompt": assembled})


def load_server_settings() -> ServerSettings:
    port = os.getenv("PORT", "8080")
    try:
        return ServerSettings(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(port),
            github_webhook_secret=os.getenv("GITHUB_WEBHOOK_SECRET") or None,
            gitea_webhook_secret=os.getenv("GITEA_WEBHOOK_SECRET") or None,
        )
    except ValueError as exc:
        raise SettingsError(f"Invalid value for PORT: {port!r}. It must be an integer.") from exc


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return load_settings()


def get_settings() -> Settings:
    """Retrieve cached application settings."""
    return _cached_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for tests)."""
    _cached_settings.cache_clear()
