"""
Application-level exceptions.

Every error that may cross the service boundary derives from `AppError` and
carries a client-safe `message` plus a canonical `error_code`. The gateway
turns them into `{"message", "extensions": {"code"}}` entries and REST routes
into `to_payload()` bodies with `http_status()`.
"""

from typing import Iterable


class AppError(Exception):
    """
    Base exception for errors that are safe to report to callers.

    - message: human-friendly message (safe to show to clients)
    - fields: optional list of field names related to the error (e.g. ['content'])
    - constraint: optional DB constraint name or identifier (for logs only)
    - error_code: canonical short code (e.g. 'duplicate', 'not_authorized') used by clients
    """

    ERROR_CODE_TO_STATUS = {
        "unauthenticated": 401,
        "not_authorized": 403,
        "not_found": 404,
        "duplicate": 409,
        "invalid_field": 422,
        "invalid_input": 422,
        "invalid_participant": 422,
        "validation_error": 422,
        "storage_unavailable": 503,
    }

    default_message = "Request failed"
    default_code: str | None = None

    def __init__(self, message: str | None = None, *, fields: Iterable[str] | None = None,
                 constraint: str | None = None, error_code: str | None = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.fields = list(fields) if fields else None
        self.constraint = constraint
        self.error_code = error_code or self.default_code

    def __str__(self) -> str:
        parts = []
        if self.fields:
            parts.append(f"fields: {', '.join(self.fields)}")
        if self.constraint:
            parts.append(f"constraint: {self.constraint}")
        if self.error_code:
            parts.append(f"code: {self.error_code}")
        if parts:
            return f"{self.message} ({'; '.join(parts)})"
        return self.message

    def to_payload(self) -> dict:
        """
        JSON-serializable body for HTTP responses:

            {"detail": "...", "code": "duplicate", "fields": ["username"]}

        `constraint` is never included.
        """
        payload = {"detail": self.message}
        if self.error_code:
            payload["code"] = self.error_code
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload

    def http_status(self) -> int:
        if self.error_code:
            return self.ERROR_CODE_TO_STATUS.get(self.error_code, 400)
        return 400


# -----------------------
# Caller / input errors
# -----------------------

class UnauthenticatedError(AppError):
    """No session user, or the session's user no longer exists."""
    default_message = "Authentication required"
    default_code = "unauthenticated"


class NotAuthorizedError(AppError):
    """The caller is not a participant of the conversation it addressed."""
    default_message = "Not authorized to access this conversation"
    default_code = "not_authorized"


class InvalidParticipantError(AppError):
    default_message = "Invalid conversation participant"
    default_code = "invalid_participant"


class ValidationError(AppError):
    default_message = "Invalid input"
    default_code = "validation_error"


# -----------------------
# Storage errors
# -----------------------

class RepositoryError(AppError):
    """Base exception for repository/storage errors."""
    default_message = "Database operation failed"


class NotFoundError(RepositoryError):
    default_message = "Not found"
    default_code = "not_found"


class DuplicateError(RepositoryError):
    default_message = "Record already exists"
    default_code = "duplicate"


class InvalidFieldError(RepositoryError):
    """Raised when the caller passes unknown fields to repository methods."""
    default_message = "Unknown field(s)"
    default_code = "invalid_field"


class StorageUnavailableError(RepositoryError):
    """The database could not be reached or failed unexpectedly."""
    default_message = "Storage is temporarily unavailable"
    default_code = "storage_unavailable"


__all__ = [
    "AppError",
    "UnauthenticatedError",
    "NotAuthorizedError",
    "InvalidParticipantError",
    "ValidationError",
    "RepositoryError",
    "NotFoundError",
    "DuplicateError",
    "InvalidFieldError",
    "StorageUnavailableError",
]
