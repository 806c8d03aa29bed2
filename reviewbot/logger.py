"""Loguru setup shared by the webhook server, the queue worker and the CLI.

Every record carries whatever context was bound to it (delivery id, repository,
pull number, file path); the console and file sinks render it after the message.
"""

from __future__ import annotations

import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger as _logger

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR_ENV = "REVIEWBOT_LOG_DIR"
LOG_LEVEL_ENV = "REVIEWBOT_LOG_LEVEL"
LOG_JSON_ENV = "REVIEWBOT_LOG_JSON"

_CONTEXT_KEYS = ("delivery_id", "provider", "repository", "pull_number", "file_path", "model")
_configured = False


def _render_context(record: dict[str, Any]) -> None:
    extra = record["extra"]
    pairs = [f"{key}={extra[key]}" for key in _CONTEXT_KEYS if extra.get(key) is not None]
    extra["context"] = f" [{' '.join(pairs)}]" if pairs else ""


def _log_dir(explicit: str | Path | None) -> Path:
    raw = explicit if explicit is not None else os.getenv(LOG_DIR_ENV)
    if raw:
        return Path(raw).expanduser().resolve()
    return DEFAULT_LOG_DIR


def configure_logger(*, log_dir: str | Path | None = None, level: str | None = None) -> None:
    """Install the console and rotating file sinks once per process.

    ``REVIEWBOT_LOG_LEVEL`` sets the console level (file sink always records DEBUG),
    ``REVIEWBOT_LOG_DIR`` moves the log files and ``REVIEWBOT_LOG_JSON=1`` switches
    the file sink to one JSON object per line.
    """

    global _configured
    if _configured:
        return

    target_dir = _log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    console_level = (level or os.getenv(LOG_LEVEL_ENV, "INFO")).upper()
    as_json = os.getenv(LOG_JSON_ENV, "").lower() in {"1", "true", "yes"}

    line_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>{extra[context]}"
    )

    _logger.remove()
    _logger.configure(patcher=_render_context)
    _logger.add(sys.stdout, level=console_level, format=line_format, colorize=sys.stdout.isatty())
    _logger.add(
        target_dir / "reviewbot-{time:YYYY-MM-DD}.log",
        level="DEBUG",
        format=line_format,
        serialize=as_json,
        rotation="00:00",
        retention="14 days",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    _configured = True


def get_logger(*, log_dir: str | Path | None = None, level: str | None = None):
    """Return the process-wide logger, configuring it on first use."""

    configure_logger(log_dir=log_dir, level=level)
    return _logger


def log_with_context(logger_instance, **context: Any):
    """Bind the non-``None`` fields of ``context`` to ``logger_instance``."""
    return logger_instance.bind(**{key: value for key, value in context.items() if value is not None})


def pr_logger(logger_instance, owner_repo: str, number: int, **context: Any):
    """Logger bound to one pull request, e.g. ``pr_logger(logger, "octo/widgets", 7)``."""
    return log_with_context(logger_instance, repository=owner_repo, pull_number=number, **context)


@contextmanager
def log_timing(logger_instance, operation: str, **context: Any) -> Iterator[Any]:
    """Log how long the wrapped block took, and whether it raised.

    Usage:
        with log_timing(logger, "fetch_diff", repository="owner/repo"):
            ...
    """

    ctx_logger = log_with_context(logger_instance, **context)
    started = time.perf_counter()
    ctx_logger.debug(f"Starting {operation}")
    try:
        yield ctx_logger
    except Exception as exc:
        ctx_logger.error(f"Failed {operation} after {time.perf_counter() - started:.3f}s: {exc!r}")
        raise
    ctx_logger.debug(f"Completed {operation} in {time.perf_counter() - started:.3f}s")


def log_success(logger_instance, message: str, **context: Any) -> None:
    log_with_context(logger_instance, **context).info(f"=== SUCCESS: {message} ===")


def log_failure(logger_instance, message: str, error: BaseException | None = None, **context: Any) -> None:
    ctx_logger = log_with_context(logger_instance, **context)
    if error is None:
        ctx_logger.error(f"=== FAILURE: {message} ===")
    else:
        ctx_logger.error(f"=== FAILURE: {message} | Error: {error} ===")
