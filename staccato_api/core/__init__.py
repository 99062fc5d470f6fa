"""Core: configuration.

Single place for settings.
"""

from staccato_api.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
