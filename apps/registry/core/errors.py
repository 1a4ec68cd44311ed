"""Error classification for registry storage operations.

ErrorCategory determines how a failure is surfaced:
- NOT_FOUND: missing descriptor or artifact, reported as a sentinel value
- MALFORMED_INPUT: rejected before any filesystem mutation
- STORAGE_FAILURE: the filesystem refused an operation, never retried
- CORRUPT_DOCUMENT: a stored descriptor could not be parsed
"""

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCategory(str, Enum):
    """Classification of registry errors."""

    NOT_FOUND = "not_found"
    MALFORMED_INPUT = "malformed_input"
    STORAGE_FAILURE = "storage_failure"
    CORRUPT_DOCUMENT = "corrupt_document"


class ErrorResponse(BaseModel):
    """JSON error body returned by the HTTP layer."""

    error: str = Field(..., description="Machine-readable error code")
    reason: str | None = Field(default=None, description="Human-readable explanation")
    message: str | None = Field(default=None, description="Underlying error text")

    @classmethod
    def not_found(cls, reason: str) -> "ErrorResponse":
        """Build a not_found body."""
        return cls(error="not_found", reason=reason)

    @classmethod
    def server_error(cls, exc: Exception) -> "ErrorResponse":
        """Build a server_error body from an exception."""
        return cls(error="server_error", message=str(exc))
