"""
NoteForge Backend - Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for each failure the editor can hit.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py turn them into JSON error
       responses; client-side components turn them into toast notifications.
Who:   Raised by services, ingestion adapters and middleware.

Exception Hierarchy:
    NoteForgeError (base)
    ├── ValidationError          → 400 Bad Request
    ├── InvalidReference         → 400 Bad Request (bad YouTube link or id)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── TranscriptUnavailable    → 404 Not Found
    ├── ParseError               → 422 Unprocessable Entity
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── StoreUnavailable         → 503 Service Unavailable
    ├── ProviderError            → 503 Service Unavailable
    └── CircuitBreakerOpenError  → 503 Service Unavailable

None of these are retried automatically. The user retries the action that
triggered them.
"""

from typing import Any, Dict, Optional


class NoteForgeError(Exception):
    """
    Base exception for all NoteForge application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where noted)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteForgeError):
    """
    Raised when client input fails a business rule.

    When:  Upload type or size rejected, empty body, unsupported field value.
    HTTP:  400 Bad Request. Pydantic schema failures keep FastAPI's 422.
    """

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


class InvalidReference(NoteForgeError):
    """
    Raised when a YouTube video id cannot be extracted from the user input.

    HTTP:  400 Bad Request
    """

    def __init__(
        self,
        reference: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reference"] = reference
        super().__init__(message="Invalid YouTube link or ID", context=ctx)
        self.reference = reference


class AuthenticationError(NoteForgeError):
    """
    Raised when a request needs a session and carries no valid one.

    HTTP:  401 Unauthorized
    """

    def __init__(
        self,
        message: str = "A valid session is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NoteForgeError):
    """
    Raised when a requested resource does not exist.

    When:  GET /api/uploads/{path} for a file that was never stored.
    HTTP:  404 Not Found
    """

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


class TranscriptUnavailable(NoteForgeError):
    """
    Raised when a YouTube video has no retrievable transcript.

    When:  Transcripts disabled, no transcript in any language, video gone.
    HTTP:  404 Not Found
    """

    def __init__(
        self,
        video_id: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["video_id"] = video_id
        super().__init__(
            message="No transcript is available for this video",
            context=ctx,
        )
        self.video_id = video_id


class ParseError(NoteForgeError):
    """
    Raised when an ingested file is malformed or of an unsupported format.

    When:  Corrupt PDF, non-DOCX bytes sent as a document, extraction
           endpoint answered with an error.
    HTTP:  422 Unprocessable Entity (POST /api/parse-pdf keeps its fixed
           500 plain-text contract instead)
    """

    def __init__(
        self,
        message: str = "The file could not be parsed",
        source_kind: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if source_kind:
            ctx["source_kind"] = source_kind
        super().__init__(message=message, context=ctx)
        self.source_kind = source_kind


class FileStorageError(NoteForgeError):
    """
    Raised when file system operations fail.

    When:  Disk full, permission denied, directory not writable, I/O error.
    HTTP:  500 Internal Server Error (paths stay in the server log)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailable(NoteForgeError):
    """
    Raised when the document content store cannot serve a read or a write.

    When:  Network or auth failure talking to the database, a save that
           matches no row, a write rejected by a constraint.
    HTTP:  503 Service Unavailable

    SQL text, constraint names and driver messages go to the log only.
    """

    def __init__(
        self,
        message: str = "The document store is unavailable. Please try again later.",
        document_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if document_id:
            ctx["document_id"] = document_id
        super().__init__(message=message, context=ctx)
        self.document_id = document_id


class ProviderError(NoteForgeError):
    """
    Raised when an upstream service is unreachable or rejects the request.

    When:  The completion provider refuses to open a stream, or a web page
           fetch fails.
    HTTP:  503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The AI service is temporarily unavailable",
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if provider:
            ctx["provider"] = provider
        super().__init__(message=message, context=ctx)
        self.provider = provider


class CircuitBreakerOpenError(NoteForgeError):
    """
    Raised when the completion provider's circuit breaker is OPEN.

    State machine:
        CLOSED → (threshold consecutive failures) → OPEN
        OPEN → (recovery timeout elapsed) → HALF_OPEN
        HALF_OPEN → success → CLOSED | failure → OPEN

    HTTP:  503 Service Unavailable with Retry-After
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"Try again in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(NoteForgeError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:  429 Too Many Requests with Retry-After
    """

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
