"""Shared utilities: telemetry and cross-cutting helpers.

Used by core and infrastructure. No business logic.
"""

from staccato_api.shared.utils import to_epoch_seconds, utc_now

__all__ = [
    "utc_now",
    "to_epoch_seconds",
]
