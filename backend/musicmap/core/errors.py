from __future__ import annotations

from fastapi import status


class MusicMapError(Exception):
    """Base for errors that are reported to the client with their own message."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(MusicMapError):
    status_code = 422


class AuthenticationError(MusicMapError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(MusicMapError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(MusicMapError):
    status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(MusicMapError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
