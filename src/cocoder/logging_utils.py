"""Runtime logging helpers."""

from __future__ import annotations

import sys
from logging import Handler
from typing import Literal

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

from cocoder.errors import ConfigurationError

LogProfile = Literal["default", "console"]

LOG_LEVELS: dict[str, str | None] = {
    "off": None,
    "info": "INFO",
    "debug": "DEBUG",
    "trace": "TRACE",
}
_DEFAULT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {message}"
_CONFIGURED: tuple[str, LogProfile] | None = None


def _build_console_handler() -> Handler:
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(level: str = "info", *, profile: LogProfile = "default") -> None:
    """Configure process-level logging once per level and profile."""
    global _CONFIGURED

    normalized = level.strip().lower()
    if normalized not in LOG_LEVELS:
        raise ConfigurationError(f'Unknown log level "{level}", expected one of {", ".join(LOG_LEVELS)}')
    if _CONFIGURED == (normalized, profile):
        return

    logger.remove()
    loguru_level = LOG_LEVELS[normalized]
    if loguru_level is not None:
        if profile == "console":
            logger.add(
                _build_console_handler(),
                level=loguru_level,
                format="{message}",
                backtrace=False,
                diagnose=False,
            )
        else:
            logger.add(
                sys.stderr,
                level=loguru_level,
                format=_DEFAULT_FORMAT,
                backtrace=False,
                diagnose=False,
            )
    _CONFIGURED = (normalized, profile)
