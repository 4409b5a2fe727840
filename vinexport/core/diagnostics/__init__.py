"""Error classification and operator diagnostics."""

from vinexport.core.diagnostics.classifier import (
    ErrorCategory,
    categorize_error,
    derive_error_code,
)
from vinexport.core.diagnostics.reporting import (
    ClassifiedError,
    ErrorReporter,
    format_error_message,
    format_provider_digest,
)

__all__ = [
    "ErrorCategory",
    "categorize_error",
    "derive_error_code",
    "ClassifiedError",
    "ErrorReporter",
    "format_error_message",
    "format_provider_digest",
]
