"""Error reporting and operator-facing diagnostics."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, Field

from vinexport.core.diagnostics.classifier import ErrorCategory, categorize_error

logger = logging.getLogger(__name__)


class ClassifiedError(BaseModel):
    """A provider error with its taxonomy category."""

    type: ErrorCategory
    provider: str
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


TROUBLESHOOTING_STEPS: tuple[str, ...] = (
    "Check API key configuration in the deployment secrets",
    "Verify provider quotas and limits",
    "Test with smaller PDF files",
    "Check network connectivity",
    "Review provider-specific error messages",
)


class ErrorReporter:
    """Bounded rolling buffer of classified provider errors."""

    def __init__(self, capacity: int = 50):
        self._errors: deque[ClassifiedError] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def report(
        self,
        provider: str,
        message: str,
        details: dict[str, Any] | None = None,
        category: ErrorCategory | None = None,
    ) -> ClassifiedError:
        """Classify and record an error.

        Args:
            provider: Provider the error came from
            message: Raw error message
            details: Optional structured context (status code, attempt, ...)
            category: Pre-computed category; classified from message if omitted

        Returns:
            The recorded ClassifiedError
        """
        error = ClassifiedError(
            type=category or categorize_error(message, provider),
            provider=provider,
            message=message,
            details=details,
        )
        with self._lock:
            self._errors.append(error)

        logger.error(f"Provider error [{error.type.value}] {provider}: {message}")
        return error

    def get_error_counts(self) -> dict[str, int]:
        """Count recorded errors per category."""
        with self._lock:
            counts = Counter(error.type.value for error in self._errors)
        return dict(counts)

    def get_error_summary(self) -> str:
        """One-line summary of error counts per category."""
        counts = self.get_error_counts()
        if not counts:
            return "No errors recorded"
        parts = ", ".join(f"{name}: {count}" for name, count in counts.items())
        return f"Error summary: {parts}"

    def get_last_errors(self, count: int = 5) -> list[ClassifiedError]:
        """Most recent errors, oldest first."""
        with self._lock:
            errors = list(self._errors)
        return errors[-count:] if count > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def generate_diagnostic_report(self) -> str:
        """Multi-section report: summary, last 3 errors, troubleshooting checklist."""
        lines = [
            "AI Extraction Diagnostic Report",
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            "",
            self.get_error_summary(),
            "",
            "Recent Errors:",
        ]

        for i, error in enumerate(self.get_last_errors(3), start=1):
            lines.append(f"{i}. {error.type.value} ({error.provider})")
            lines.append(f"   Message: {error.message}")
            lines.append(f"   Time: {error.timestamp.isoformat()}")
            if error.details:
                lines.append(f"   Details: {json.dumps(error.details, indent=2, default=str)}")

        lines.append("")
        lines.append("Troubleshooting Steps:")
        for i, step in enumerate(TROUBLESHOOTING_STEPS, start=1):
            lines.append(f"{i}. {step}")

        return "\n".join(lines)


# =============================================================================
# Per-provider status digest
# =============================================================================


class ProviderRunLike(Protocol):
    provider: str
    success: bool
    status_code: int | None
    error_code: str | None
    error: str | None


PROVIDER_ICONS: dict[str, str] = {
    "openai": "🚀",
    "anthropic": "🤖",
    "google": "🧠",
}

DIGEST_ORDER: tuple[str, ...] = ("openai", "anthropic", "google")

DIGEST_MESSAGE_LIMIT = 140


def _digest_rank(provider: str) -> int:
    if provider in DIGEST_ORDER:
        return DIGEST_ORDER.index(provider)
    return len(DIGEST_ORDER)


def _outcome_tag(run: ProviderRunLike) -> str:
    if run.success:
        return "OK"
    if run.error_code == "rate_limited" or run.status_code == 429:
        return "QUOTA"
    if run.error_code == "unauthorized" or run.status_code == 401:
        return "AUTH"
    if run.error_code == "invalid_model":
        return "MODEL"
    return "KO"


def _digest_line(run: ProviderRunLike) -> str:
    icon = PROVIDER_ICONS.get(run.provider, "•")
    line = f"{icon} {run.provider} - {_outcome_tag(run)}"
    if run.status_code:
        line += f" ({run.status_code})"
    if run.error_code:
        line += f" [{run.error_code}]"

    message = re.sub(r"\s+", " ", (run.error or "")[:DIGEST_MESSAGE_LIMIT]).strip()
    if message and not run.success:
        line += f": {message}"
    return line


def format_provider_digest(
    runs: Iterable[ProviderRunLike],
    header: str = "AI analysis unavailable.",
) -> str:
    """Compact per-provider status digest.

    One line per provider attempted, in the stable order openai, anthropic,
    google (others after). When a provider was attempted more than once its
    successful run wins, otherwise its last run is shown.
    """
    latest: dict[str, ProviderRunLike] = {}
    for run in runs:
        current = latest.get(run.provider)
        if current is not None and current.success and not run.success:
            continue
        latest[run.provider] = run

    if not latest:
        return "Unknown orchestrator failure."

    ordered = sorted(latest.values(), key=lambda r: _digest_rank(r.provider))
    return "\n".join([header, *(_digest_line(run) for run in ordered)])


def format_error_message(error: Any, context: str) -> str:
    """Prefix an error with context and append operator hints."""
    base_message = str(getattr(error, "message", None) or error)

    insights = []
    if "max_tokens" in base_message:
        insights.append("API parameter error - check token limits")
    if "429" in base_message:
        insights.append("Rate limited - wait before retry or check quotas")
    if "401" in base_message or "403" in base_message:
        insights.append("Authentication failed - verify API keys")
    if "PDF" in base_message:
        insights.append("PDF processing issue - try text extraction fallback")

    insight_text = f" ({', '.join(insights)})" if insights else ""
    return f"{context}: {base_message}{insight_text}"
