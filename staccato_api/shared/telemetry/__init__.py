"""Shared telemetry: logging setup."""

from staccato_api.shared.telemetry.logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
]
