"""
NoteDock Backend - Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions, each tagged with an ErrorKind.
Why:   The HTTP boundary maps kind -> status code. Nothing in the core or the
       boundary ever inspects an error's message text.
How:   Each exception carries a human-readable message and a structured
       context dict (resource type, resource id, workspace id, ...).
Who:   Raised by services and collaborators; caught by handlers in main.py.

Exception Hierarchy:
    NoteDockError (base, kind=internal)
    ├── NotAuthenticatedError      kind=not_authenticated
    ├── ValidationError            kind=validation
    ├── NotFoundError              kind=not_found
    ├── AccessDeniedError          kind=access_denied
    ├── ConflictError              kind=conflict
    ├── EmbeddingUnavailableError  kind=unavailable
    │   └── CircuitBreakerOpenError
    └── DatabaseError              kind=internal

EmbeddingUnavailableError is never meant to reach a client: NoteService and
SearchEngine catch it and degrade (null embedding, lexical-only ranking).
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Machine-readable error category returned in the `kind` response field."""

    NOT_AUTHENTICATED = "not_authenticated"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class NoteDockError(Exception):
    """
    Base exception for all NoteDock application errors.

    Attributes:
        kind:     ErrorKind tag used by the boundary for status mapping
        message:  User-facing error description (safe to return in API response)
        context:  Structured details (logged; returned only where harmless)
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class NotAuthenticatedError(NoteDockError):
    """No authenticated principal accompanied the request."""

    kind = ErrorKind.NOT_AUTHENTICATED

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message=message)


class ValidationError(NoteDockError):
    """
    Raised when client input fails a business rule.

    When:  Missing or blank title, no fields, blank field label, missing
           workspaceId/noteType on search, malformed identifiers.
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(NoteDockError):
    """
    Raised when a note or workspace does not exist.

    The `resource` attribute distinguishes "note" from "workspace" so callers
    never need to parse the message.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class AccessDeniedError(NoteDockError):
    """
    Raised when the actor lacks the membership or ownership an operation needs.

    `reason` is a short machine tag: "not_author", "not_member", "read_only".
    """

    kind = ErrorKind.ACCESS_DENIED

    def __init__(
        self,
        message: str = "Access denied",
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if reason:
            ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.reason = reason


class ConflictError(NoteDockError):
    """
    Raised when a concurrent mutation changed a note between read and write.

    Retryable: the caller may re-read and try again.
    """

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        note_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if note_id:
            ctx["note_id"] = note_id
        if expected_version is not None:
            ctx["expected_version"] = expected_version
        super().__init__(
            message="The note was modified concurrently. Please retry.",
            context=ctx,
        )
        self.note_id = note_id
        self.expected_version = expected_version


class EmbeddingUnavailableError(NoteDockError):
    """
    Raised by an EmbeddingProvider that cannot produce a vector.

    When:  Provider unconfigured, network failure after retries, timeout,
           wrong output dimensionality, empty input text.
    """

    kind = ErrorKind.UNAVAILABLE

    def __init__(
        self,
        message: str = "Embedding provider is unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(EmbeddingUnavailableError):
    """Too many consecutive provider failures; calls are rejected until recovery."""

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(
            message=(
                "Embedding provider is temporarily disabled after repeated failures. "
                f"Retrying in approximately {recovery_time} seconds."
            ),
            context=ctx,
        )
        self.recovery_time = recovery_time


class DatabaseError(NoteDockError):
    """
    Raised when the note store fails unexpectedly.

    The client always receives a generic message; details are logged only.
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
