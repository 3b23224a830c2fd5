from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    ``kind`` names the failure category; ``http_status`` and ``error_code`` are
    what the HTTP edge renders.
    """

    kind = "internal"
    http_status = 500
    error_code = "5001"
    title = "Internal Server Error"

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "validation"
    http_status = 400
    error_code = "4001"
    title = "Invalid Input"


class NotFoundError(DomainError):
    kind = "not_found"
    http_status = 404
    error_code = "4004"
    title = "Not Found"


class ConflictError(DomainError):
    kind = "conflict"
    http_status = 409
    error_code = "4009"
    title = "Conflict"


class DuplicateRegistrationNumberError(ConflictError):
    pass


class AlreadyAnnouncedError(ConflictError):
    pass


class AlreadyRegisteredError(ConflictError):
    pass


class AlreadyCheckedInError(ConflictError):
    pass


class AttendanceAlreadyRecordedError(ConflictError):
    """One mark per student, class and date."""


class StaleWriteError(ConflictError):
    """Raised when an optimistic version check loses a concurrent write."""


class InvalidStateError(DomainError):
    kind = "invalid_state"
    http_status = 409
    error_code = "4009"
    title = "Invalid State"


class FileTooLargeError(DomainError):
    kind = "too_large"
    http_status = 413
    error_code = "4013"
    title = "Payload Too Large"


class StorageError(DomainError):
    kind = "io"


class PersistenceError(DomainError):
    kind = "db"


class DuplicateKeyError(PersistenceError):
    """Unique constraint violation reported by the store."""


class ReferencedRowError(PersistenceError):
    """Delete blocked by a foreign key still pointing at the row."""


class PublishError(DomainError):
    kind = "publish_failed"


class DeadlineExceededError(DomainError):
    kind = "deadline"
    http_status = 504
    error_code = "5004"
    title = "Gateway Timeout"
