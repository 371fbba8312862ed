"""Structured error taxonomy for the SDK.

Every failure the SDK surfaces is an ``SdkError`` subclass carrying a
machine-readable ``ErrorKind``. Consumers (CLI, dashboard, tool servers) map
kinds to exit codes or structured payloads via ``to_payload()``; the SDK itself
never formats user-facing guidance.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    # Authentication
    AUTH_REQUIRED = "AUTH_REQUIRED"
    REAUTH_REQUIRED = "REAUTH_REQUIRED"
    FLOW_ABORTED = "FLOW_ABORTED"
    STATE_MISMATCH = "STATE_MISMATCH"

    # Throttling and safety
    RATE_LIMITED = "RATE_LIMITED"
    WRITE_NOT_ALLOWED = "WRITE_NOT_ALLOWED"

    # Remote API
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    API_ERROR = "API_ERROR"

    # Local
    NETWORK = "NETWORK"
    PARSE = "PARSE"
    STORAGE = "STORAGE"


class ErrorPayload(BaseModel):
    """Structured error value handed to consumers.

    Attributes:
        error_code: Machine-readable error kind
        message: Diagnostic message (not user guidance)
        details: Kind-specific fields (status, resource, messages, ...)
        retry_after: Seconds to wait before retrying (for rate limits)
        is_retryable: Whether repeating the operation later may succeed
    """
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    retry_after: Optional[int] = None
    is_retryable: bool = False


# Kinds a caller may reasonably retry after the SDK gave up internally
RETRYABLE_ERRORS = {
    ErrorKind.RATE_LIMITED,
    ErrorKind.NETWORK,
}


class SdkError(Exception):
    """Base exception for all SDK failures."""

    kind: ErrorKind = ErrorKind.API_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_ERRORS

    def details(self) -> Optional[Dict[str, Any]]:
        """Kind-specific structured fields."""
        return None

    def to_payload(self) -> ErrorPayload:
        """Convert the error into a structured payload."""
        return ErrorPayload(
            error_code=self.kind.value,
            message=self.message or self.kind.value,
            details=self.details(),
            retry_after=getattr(self, "retry_after", None),
            is_retryable=self.is_retryable,
        )


# =============================================================================
# Authentication
# =============================================================================


class AuthError(SdkError):
    """Base class for authentication failures."""

    kind = ErrorKind.AUTH_REQUIRED


class AuthRequiredError(AuthError):
    """No credential is available; the caller must log in."""

    kind = ErrorKind.AUTH_REQUIRED


class ReauthRequiredError(AuthError):
    """The credential could not be refreshed; the caller must log in again."""

    kind = ErrorKind.REAUTH_REQUIRED


class FlowAbortedError(AuthError):
    """The interactive login did not complete (timeout or cancellation)."""

    kind = ErrorKind.FLOW_ABORTED


class StateMismatchError(AuthError):
    """The authorization callback carried an unexpected anti-CSRF state."""

    kind = ErrorKind.STATE_MISMATCH


# =============================================================================
# Request failures
# =============================================================================


class RateLimitedError(SdkError):
    """Raised when throttling persists past the retry budget."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "", retry_after: int = 60):
        super().__init__(message or f"Rate limited, retry after {retry_after}s")
        self.retry_after = retry_after


class WriteNotAllowedError(SdkError):
    """Raised when a mutating request is attempted with writes disabled."""

    kind = ErrorKind.WRITE_NOT_ALLOWED


class ValidationError(SdkError):
    """Raised for rejected input, either locally or by the remote API."""

    kind = ErrorKind.VALIDATION

    def __init__(self, messages: List[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "Validation failed")

    def details(self) -> Dict[str, Any]:
        return {"messages": self.messages}


class NotFoundError(SdkError):
    """Raised when the requested record does not exist (404)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, id: str = ""):
        self.resource = resource
        self.id = id
        super().__init__(
            f"{resource} {id} not found" if id else f"{resource} not found"
        )

    def details(self) -> Dict[str, Any]:
        return {"resource": self.resource, "id": self.id}


class ApiError(SdkError):
    """Raised for any other non-success response."""

    kind = ErrorKind.API_ERROR

    def __init__(self, status: int, message: str = ""):
        self.status = status
        super().__init__(f"API error ({status}): {message}" if message else f"API error ({status})")

    def details(self) -> Dict[str, Any]:
        return {"status": self.status}


class NetworkError(SdkError):
    """Raised when the transport fails and retries are exhausted."""

    kind = ErrorKind.NETWORK

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class ParseError(SdkError):
    """Raised when a response body cannot be decoded."""

    kind = ErrorKind.PARSE


class StorageError(SdkError):
    """Raised when credential storage cannot be read or written."""

    kind = ErrorKind.STORAGE


def truncate(text: str, limit: int = 500) -> str:
    """Truncate ``text`` to ``limit`` characters for inclusion in messages."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
