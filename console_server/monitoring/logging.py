"""
Loguru sink configuration.

Human-readable output in development, one JSON object per line in
production so the cluster log collector can parse it.
"""

import sys

from loguru import logger

from console_server.settings import Settings

LEVEL_ALIASES = {"WARN": "WARNING"}


def resolve_level(settings: Settings) -> str:
    """LOG_LEVEL if valid, else DEBUG in development and INFO in production."""
    default = "INFO" if settings.is_production else "DEBUG"
    if not settings.log_level:
        return default
    level = settings.log_level.upper()
    level = LEVEL_ALIASES.get(level, level)
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        return default
    return level


def setup_logging(settings: Settings) -> None:
    """Replace loguru's default sink according to settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=resolve_level(settings),
        serialize=settings.is_production,
        backtrace=not settings.is_production,
        diagnose=False,
    )
