"""Infrastructure exceptions for Firestore and token-endpoint operations.

Firestore errors extend StaccatoException so callers can map them to
HTTP responses consistently. Every non-2xx response the client does not
treat as a normal outcome becomes one of these.
"""

from typing import Any

from staccato_api.domain.exceptions import StaccatoException


def _http_details(status_code: int | None, body: str | None) -> dict[str, Any]:
    details: dict[str, Any] = {}
    if status_code is not None:
        details["status_code"] = status_code
    if body:
        details["body"] = body
    return details


class FirestoreException(StaccatoException):
    """Base exception for Firestore client operations."""


class AuthenticationError(FirestoreException):
    """Credential, signing or token exchange failed. Not retried internally."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            message,
            "FIRESTORE_AUTHENTICATION_ERROR",
            _http_details(status_code, body),
        )


class SerializationError(FirestoreException):
    """A value cannot be represented as, or parsed from, a Firestore value."""

    def __init__(self, message: str, value_type: str | None = None) -> None:
        details = {"value_type": value_type} if value_type else {}
        super().__init__(message, "FIRESTORE_SERIALIZATION_ERROR", details)


class ServiceError(FirestoreException):
    """Firestore returned a non-2xx response."""

    error_code_default = "FIRESTORE_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            message,
            self.error_code_default,
            _http_details(status_code, body),
        )


class ConflictError(ServiceError):
    """Document already exists (409), e.g. create with a duplicate explicit ID."""

    error_code_default = "FIRESTORE_CONFLICT"


class TransientError(ServiceError):
    """Timeout, transport failure or 5xx. Safe to retry with backoff."""

    error_code_default = "FIRESTORE_TRANSIENT_ERROR"


class QuotaExceededError(TransientError):
    """Firestore or the token endpoint answered 429."""

    error_code_default = "FIRESTORE_QUOTA_EXCEEDED"
