"""
domain/exceptions.py
──────────────────────────────────────────────────────────────────────────────
Failure taxonomy.

Every failure that crosses a component boundary is a TutorError tagged with
exactly one FailureKind.  The kind fixes the machine-readable code, the HTTP
status and the retryability flag, so callers branch on ``err.kind`` instead
of on a subclass:

  QUOTA_EXCEEDED       → 429  not retryable
  INVALID_CREDENTIAL   → 401  not retryable
  RATE_LIMITED         → 429  retryable
  NETWORK_UNAVAILABLE  → 503  retryable
  VALIDATION_FAILED    → 400  not retryable
  STORAGE_FAILED       → 500  retryable
  UNCLASSIFIED         → 500  retryable (status may carry the upstream one)
  NOT_FOUND            → 404  not retryable
  DUPLICATE_ENTRY      → 409  not retryable

ProviderError is the provider-native shape raised by HTTP adapters.  It is
classified by services/error_classifier.py and never reaches a handler.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class FailureKind(Enum):
    """Closed set of failure kinds: (code, http_status, retryable, default message)."""

    QUOTA_EXCEEDED = (
        "QUOTA_EXCEEDED", 429, False,
        "OpenAI quota exceeded. Please check your billing and plan.",
    )
    INVALID_CREDENTIAL = (
        "INVALID_API_KEY", 401, False,
        "Invalid or missing OpenAI API key.",
    )
    RATE_LIMITED = (
        "RATE_LIMIT", 429, True,
        "Rate limit exceeded. Please try again later.",
    )
    NETWORK_UNAVAILABLE = (
        "NETWORK_ERROR", 503, True,
        "Network error occurred while calling the provider.",
    )
    VALIDATION_FAILED = (
        "VALIDATION_ERROR", 400, False,
        "Invalid input data provided.",
    )
    STORAGE_FAILED = (
        "DATABASE_ERROR", 500, True,
        "Database operation failed.",
    )
    UNCLASSIFIED = (
        "EMBEDDING_GENERATION_FAILED", 500, True,
        "Provider request failed.",
    )
    NOT_FOUND = (
        "NOT_FOUND", 404, False,
        "Question not found",
    )
    DUPLICATE_ENTRY = (
        "DUPLICATE_QUESTION", 409, False,
        "Question already exists in the database",
    )

    def __init__(
        self,
        code: str,
        http_status: int,
        retryable: bool,
        default_message: str,
    ) -> None:
        self.code = code
        self.http_status = http_status
        self.retryable = retryable
        self.default_message = default_message


class TutorError(Exception):
    """Base exception for all application errors.

    Args:
        kind:        The taxonomy member.
        message:     Human-readable detail; defaults to the kind's message.
        http_status: Only honoured for UNCLASSIFIED, which carries the
                     upstream status through.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.message = message or kind.default_message
        if kind is FailureKind.UNCLASSIFIED and http_status:
            self._http_status = http_status
        else:
            self._http_status = kind.http_status
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def http_status(self) -> int:
        return self._http_status

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_envelope(self) -> dict[str, Any]:
        """Uniform JSON error body returned to HTTP callers."""
        return {
            "statusCode": self.http_status,
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"TutorError({self.kind.name}, {self.message!r})"


class ProviderError(Exception):
    """Raw failure reported by an external AI provider call.

    Attributes mirror the provider's error object; any of them may be None
    (e.g. a transport failure has no HTTP status).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        type: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.type = type
