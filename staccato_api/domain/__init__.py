"""Domain layer: exceptions shared by every other layer.

No dependencies on infrastructure.
"""

from staccato_api.domain.exceptions import (
    ConfigurationException,
    StaccatoException,
    ValidationException,
)

__all__ = [
    "ConfigurationException",
    "StaccatoException",
    "ValidationException",
]
