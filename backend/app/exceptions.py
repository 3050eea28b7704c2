"""
School Directory Backend: Custom Exception Hierarchy
=====================================================

What:  Application-specific exceptions, one per failure kind.
Why:   Callers (the route layer, tests) tell failures apart by type and by
       structured attributes, never by inspecting message text.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py map each type to an HTTP
       status and a JSON envelope.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    SchoolDirectoryError (base)
    ├── ValidationError          → 400 Bad Request (one or more field errors)
    ├── InvalidIdError           → 400 Bad Request (malformed id argument)
    ├── NotFoundError            → 404 Not Found
    ├── DuplicateEmailError      → 409 Conflict
    ├── StorageError             → 500 Internal Server Error
    ├── FileStorageError         → 500 Internal Server Error
    ├── LLMServiceError          → 503 Service Unavailable
    ├── CircuitBreakerOpenError  → 503 Service Unavailable
    └── RateLimitExceededError   → 429 Too Many Requests
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure."""

    field: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class SchoolDirectoryError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SchoolDirectoryError):
    """
    Raised when client input fails validation.

    Carries every violation found, not just the first. Single-field checks
    outside the School rules (e.g. upload validation) pass `field` and get a
    one-element error list.

    Example response:
        {
            "success": false,
            "message": "Validation failed",
            "error": "School name is required, Please enter a valid email address",
            "details": [{"field": "name", "message": "School name is required"}, ...]
        }
    """

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        errors: Optional[Sequence[FieldError]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        collected: List[FieldError] = list(errors or [])
        if not collected and field and message:
            collected.append(FieldError(field=field, message=message))
        if message is None:
            message = ", ".join(e.message for e in collected) or "Validation failed"
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = collected

    @property
    def fields(self) -> List[str]:
        """Names of the fields that failed, in the order they were checked."""
        return list(dict.fromkeys(e.field for e in self.errors))


class InvalidIdError(SchoolDirectoryError):
    """
    Raised when an id argument is not a positive integer.

    HTTP: 400 Bad Request
    """

    def __init__(self, value: Any = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["value"] = repr(value)
        super().__init__(message="School ID must be a valid number", context=ctx)
        self.value = value


class NotFoundError(SchoolDirectoryError):
    """
    Raised when a requested resource does not exist.

    Lookups by id return None for "not found"; this error is raised by the
    operations that need an existing record to act on (update, delete).
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"No {resource} found with ID: {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class DuplicateEmailError(SchoolDirectoryError):
    """
    Raised when another school already uses the given email_id.

    HTTP: 409 Conflict. Recoverable by choosing a different email.
    """

    def __init__(self, email_id: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["email_id"] = email_id
        super().__init__(message="A school with this email already exists", context=ctx)
        self.email_id = email_id


class StorageError(SchoolDirectoryError):
    """
    Raised when a database operation fails unexpectedly.

    Connection lost, timeout, deadlock and so on. The message returned to the
    client is always generic; the wrapped error type goes into context.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(SchoolDirectoryError):
    """Raised when an uploaded image cannot be written to or read from disk."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(SchoolDirectoryError):
    """
    Raised when Gemini fails after all retries.

    HTTP: 503 Service Unavailable, with Retry-After when known.
    """

    def __init__(
        self,
        message: str = "AI description service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(SchoolDirectoryError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
    → success closes the circuit, failure opens it again.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "AI service is temporarily unavailable due to repeated failures. "
            f"It will be retried in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(SchoolDirectoryError):
    """Raised when a client exceeds the per-IP request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
