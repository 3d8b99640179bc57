"""
services/error_classifier.py
──────────────────────────────────────────────────────────────────────────────
Maps a provider-native failure onto the TutorError taxonomy.

Rules, checked in order (first match wins):
  1. status 401 (or code invalid_api_key)          → INVALID_CREDENTIAL
  2. status 429 with a quota/billing code          → QUOTA_EXCEEDED
  3. status 429 otherwise                          → RATE_LIMITED
  4. status >= 500, or a connectivity code         → NETWORK_UNAVAILABLE
  5. anything else                                 → UNCLASSIFIED, carrying the
                                                     upstream status and message

The full upstream context is logged before classifying.
"""
from __future__ import annotations

import logging
from typing import Any

from mathtutor.domain.exceptions import FailureKind, TutorError

logger = logging.getLogger(__name__)

QUOTA_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached"})

CONNECTIVITY_CODES = frozenset({
    "server_error",
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "connection_error",
    "timeout",
})


def classify_provider_error(error: Any) -> TutorError:
    """Classify an error object with optional ``status``/``code``/``message``/``type``.

    Args:
        error: Typically a ProviderError, but any object exposing those
               attributes is accepted; missing ones read as None.

    Returns:
        The TutorError to raise in its place.
    """
    status = getattr(error, "status", None)
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error) or "Unknown error"
    err_type = getattr(error, "type", None)

    logger.error(
        "Provider API error | status=%s code=%s type=%s message=%s",
        status, code, err_type, message,
    )

    if status == 401 or code == "invalid_api_key":
        return TutorError(FailureKind.INVALID_CREDENTIAL)

    if status == 429:
        if code in QUOTA_CODES:
            return TutorError(FailureKind.QUOTA_EXCEEDED)
        return TutorError(FailureKind.RATE_LIMITED)

    if (isinstance(status, int) and status >= 500) or code in CONNECTIVITY_CODES:
        return TutorError(
            FailureKind.NETWORK_UNAVAILABLE,
            "OpenAI service is temporarily unavailable.",
        )

    return TutorError(
        FailureKind.UNCLASSIFIED,
        f"Provider request failed: {message}",
        http_status=status if isinstance(status, int) else 500,
    )
