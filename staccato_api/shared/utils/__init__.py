"""Shared utilities: datetime."""

from staccato_api.shared.utils.datetime import (
    to_epoch_seconds,
    utc_now,
)

__all__ = [
    "utc_now",
    "to_epoch_seconds",
]
