"""Domain error taxonomy rendered by the API as failure envelopes."""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto a client-facing response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You're not allowed to perform this task"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class UnexpectedError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AppError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "UnexpectedError",
]
