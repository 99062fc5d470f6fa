"""Logging configuration for the application."""

import logging
import sys

from staccato_api.core.config import get_settings


def setup_logging() -> None:
    """Configure application-wide logging.

    Level comes from settings.log_level, forced to DEBUG when
    settings.debug is True. Output goes to stdout. httpx request lines
    are kept at WARNING so bearer-authenticated URLs are not echoed.
    """
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
