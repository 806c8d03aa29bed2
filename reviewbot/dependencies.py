"""FastAPI dependency factories."""

from __future__ import annotations

from fastapi import HTTPException

from reviewbot.config import ServerSettings, SettingsError, load_server_settings
from reviewbot.logger import get_logger

logger = get_logger()


def server_settings_dependency() -> ServerSettings:
    """Resolve server settings, surfacing configuration errors via HTTPException."""

    try:
        return load_server_settings()
    except SettingsError as exc:
        logger.error(f"Failed to load server settings: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
