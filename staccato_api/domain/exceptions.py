"""Domain exceptions for the Staccato API.

Defines application-level exceptions independent of infrastructure
concerns. Callers map them to HTTP responses using message, error_code
and details.
"""

from typing import Any


class StaccatoException(Exception):
    """Base exception for all Staccato application errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(StaccatoException):
    """Raised when input validation fails (e.g. empty identifier)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ConfigurationException(StaccatoException):
    """Raised when required configuration is missing or malformed."""

    def __init__(self, message: str, setting: str | None = None) -> None:
        details = {"setting": setting} if setting else {}
        super().__init__(message, "CONFIGURATION_ERROR", details)
