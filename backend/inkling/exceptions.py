"""
Inkling: Server Exception Hierarchy
===================================

What:  Application-specific exceptions for the transcription endpoint.
How:   Each exception carries a message and an optional context dict.
       Global handlers (registered in main.py) turn them into the JSON
       error bodies that clients of POST /api/ocr rely on.

Exception Hierarchy:
    InklingError (base)
    ├── ValidationError            → 400 {"error": <message>}
    ├── UploadTooLargeError        → 413 {"error": "File too large"}
    ├── TranscriptionFailedError   → 500 {"error": "Failed to process image", "details": ...}
    └── CircuitBreakerOpenError    → 500 (same body as TranscriptionFailedError)

The client-side errors (camera access, invalid transitions) live in
inkling.client.errors; they never cross the wire.
"""

from typing import Any, Dict, Optional


class InklingError(Exception):
    """
    Base exception for all server errors.

    Attributes:
        message:  Client-safe error description
        context:  Debug info that is logged but never returned to the client
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(InklingError):
    """
    Raised when the upload itself is unusable: missing field, wrong type.

    HTTP: 400 Bad Request. The message is the `error` field of the body.
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


class UploadTooLargeError(InklingError):
    """Raised when an upload exceeds max_upload_bytes. HTTP: 413."""

    def __init__(
        self,
        limit_bytes: int,
        actual_bytes: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["limit_bytes"] = limit_bytes
        if actual_bytes is not None:
            ctx["actual_bytes"] = actual_bytes
        super().__init__(message="File too large", context=ctx)
        self.limit_bytes = limit_bytes


class TranscriptionFailedError(InklingError):
    """
    Raised when the hosted vision model could not produce a transcription.

    When:  After the retry budget is spent, or on a non-retryable provider error.
    HTTP:  500, with `details` set to this message.
    """

    def __init__(
        self,
        message: str = "The transcription engine did not return a result",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(TranscriptionFailedError):
    """
    Raised when the engine's circuit breaker is OPEN.

    Subclasses TranscriptionFailedError so the endpoint reports it with the
    same body; the Retry-After header is the only difference.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "Transcription engine is temporarily unavailable after repeated failures. "
            f"Retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
