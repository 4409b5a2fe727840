"""Provider error classification.

Maps raw provider error strings onto a fixed, operator-facing taxonomy.
Classification is a pure function of the lowercased message; the provider
name is carried along for reporting only.
"""

from __future__ import annotations

import re
from enum import Enum


class ErrorCategory(str, Enum):
    """Fixed taxonomy for extraction/provider errors."""

    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    AUTH_ERROR = "AUTH_ERROR"
    PDF_NOT_SUPPORTED = "PDF_NOT_SUPPORTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Ordered: first matching keyword set wins
CATEGORY_KEYWORDS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.QUOTA_EXCEEDED, ("quota", "rate limit", "exceeded")),
    (ErrorCategory.AUTH_ERROR, ("auth", "unauthorized", "forbidden")),
    (ErrorCategory.PDF_NOT_SUPPORTED, ("pdf_not_supported", "not support")),
    (ErrorCategory.NETWORK_ERROR, ("network", "timeout", "timed out", "connection")),
)


def categorize_error(error_message: str, provider: str = "") -> ErrorCategory:
    """Categorize a raw provider error message.

    Args:
        error_message: Message as raised by the provider or adapter
        provider: Provider name (not used for matching)

    Returns:
        The first matching ErrorCategory, UNKNOWN_ERROR otherwise
    """
    message = (error_message or "").lower()

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return category

    return ErrorCategory.UNKNOWN_ERROR


_RATE_LIMIT = re.compile(r"quota|rate.?limit|insufficient.*quota|exceeded.*quota", re.IGNORECASE)
_INVALID_MODEL = re.compile(r"model.*not.*found|invalid.*model", re.IGNORECASE)
_CONTEXT_LENGTH = re.compile(r"context|length|too\s+long", re.IGNORECASE)
_INVALID_REQUEST = re.compile(r"response_format|tool_choice|tools", re.IGNORECASE)
_BILLING = re.compile(r"billing|payment|subscription", re.IGNORECASE)


def derive_error_code(status_code: int | None, message: str) -> str | None:
    """Derive a short machine code from an HTTP status and error message.

    Used to tag provider runs so the status digest can show why a provider
    was unavailable.
    """
    message = message or ""

    if status_code == 401:
        return "unauthorized"
    if status_code == 429 or _RATE_LIMIT.search(message):
        return "rate_limited"
    if _INVALID_MODEL.search(message):
        return "invalid_model"
    if status_code == 400 and _CONTEXT_LENGTH.search(message):
        return "context_length_exceeded"
    if status_code == 400 and _INVALID_REQUEST.search(message):
        return "invalid_request"
    if _BILLING.search(message):
        return "billing_issue"
    return None
