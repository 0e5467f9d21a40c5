"""Custom exception hierarchy.

Every error raised by the generation pipeline derives from ``AppError`` and
carries the HTTP status and machine-readable code the API renders, plus a
``retryable`` flag telling callers whether to retry or fix their input.
"""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """Raised when a template, client or document is absent."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = (
            f"{resource} with ID {identifier} not found" if identifier else f"{resource} not found"
        )
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class AuthenticationError(AppError):
    """Raised when the caller identity header is missing."""

    status_code = 401
    code = "UNAUTHENTICATED"


class ConflictError(AppError):
    """Raised when creating a record that must be unique."""

    status_code = 409
    code = "CONFLICT"


class CapacityError(AppError):
    """Raised when the token budget is exhausted and paused."""

    status_code = 429
    code = "CAPACITY_EXCEEDED"
    retryable = True


class GenerationError(AppError):
    """Raised when the completion service fails to produce text."""

    status_code = 502
    code = "GENERATION_FAILED"
    retryable = True


class APIClientError(AppError):
    """Raised when an external API call fails."""

    status_code = 502
    code = "UPSTREAM_ERROR"
    retryable = True


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""

    status_code = 504
    code = "UPSTREAM_TIMEOUT"


class DatabaseError(AppError):
    """Raised when a database operation fails."""

    code = "DATABASE_ERROR"


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    code = "CONFIGURATION_ERROR"


class CheckpointError(AppError):
    """Base exception for checkpoint persistence problems."""

    code = "CHECKPOINT_ERROR"


class CheckpointNotFoundError(CheckpointError):
    """Raised when a checkpoint operation targets an unknown job."""

    status_code = 404
    code = "CHECKPOINT_NOT_FOUND"

    def __init__(self, job_id: str):
        super().__init__(f"Checkpoint for job {job_id} not found")
        self.job_id = job_id


class CheckpointPersistenceError(CheckpointError):
    """Raised when checkpoint progress could not be written or read."""

    code = "CHECKPOINT_WRITE_FAILED"
    retryable = True
