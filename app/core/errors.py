"""Domain exceptions. Each carries the HTTP status the API boundary responds with."""

from typing import Any


class AppError(Exception):
    """Base for errors surfaced to API clients with a safe message."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(AppError):
    """Malformed input; details lists the offending fields."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, details=details)


class ConflictError(AppError):
    status_code = 409


class AuthError(AppError):
    """Credential or refresh token rejected. Message never says which check failed."""

    status_code = 401


class UnauthenticatedError(AppError):
    """No bearer token supplied."""

    status_code = 401

    def __init__(self, message: str = "Access token required") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    """Bearer token invalid, expired, of the wrong type, or caller lacks permission."""

    status_code = 403

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class LockedError(AppError):
    """Account temporarily locked after repeated failed logins."""

    status_code = 423

    def __init__(
        self,
        message: str = "Account temporarily locked due to too many failed attempts",
    ) -> None:
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404


class UploadSessionNotFoundError(NotFoundError):
    """Upload session unknown, consumed, cancelled, swept, or owned by someone else."""

    status_code = 400

    def __init__(self, message: str = "Invalid upload session") -> None:
        super().__init__(message)


class IncompleteUploadError(AppError):
    """Chunked upload cannot complete until the missing chunk is uploaded."""

    status_code = 400

    def __init__(self, missing_index: int) -> None:
        self.missing_index = missing_index
        super().__init__(
            f"Missing chunk {missing_index}",
            details=[{"field": "chunkIndex", "message": f"Chunk {missing_index} has not been uploaded"}],
        )


class StorageError(AppError):
    """Underlying file I/O failed. Message is generic and never contains paths."""

    status_code = 500

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message)
