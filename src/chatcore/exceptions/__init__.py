from .base import (
    AppError,
    UnauthenticatedError,
    NotAuthorizedError,
    InvalidParticipantError,
    ValidationError,
    RepositoryError,
    NotFoundError,
    DuplicateError,
    InvalidFieldError,
    StorageUnavailableError,
)

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
