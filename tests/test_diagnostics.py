"""Tests for error classification, the error reporter and the provider digest."""

from __future__ import annotations

import pytest

from vinexport.core.ai.errors import ProviderCallError
from vinexport.core.ai.types import LLMRun
from vinexport.core.diagnostics import (
    ErrorCategory,
    ErrorReporter,
    categorize_error,
    derive_error_code,
    format_error_message,
    format_provider_digest,
)


class TestCategorizeError:
    """Tests for the error taxonomy."""

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("You exceeded your current quota", ErrorCategory.QUOTA_EXCEEDED),
            ("Rate limit reached for gpt-4o", ErrorCategory.QUOTA_EXCEEDED),
            ("401 Unauthorized", ErrorCategory.AUTH_ERROR),
            ("Invalid authentication credentials", ErrorCategory.AUTH_ERROR),
            ("403 Forbidden", ErrorCategory.AUTH_ERROR),
            ("Model does not support PDF input", ErrorCategory.PDF_NOT_SUPPORTED),
            ("pdf_not_supported", ErrorCategory.PDF_NOT_SUPPORTED),
            ("Connection reset by peer", ErrorCategory.NETWORK_ERROR),
            ("Operation timed out after 30000ms", ErrorCategory.NETWORK_ERROR),
            ("Something odd happened", ErrorCategory.UNKNOWN_ERROR),
            ("", ErrorCategory.UNKNOWN_ERROR),
        ],
    )
    def test_categories(self, message: str, expected: ErrorCategory) -> None:
        assert categorize_error(message, "openai") == expected

    def test_first_match_wins(self) -> None:
        """Quota keywords outrank network keywords."""
        assert categorize_error("Network quota exceeded") == ErrorCategory.QUOTA_EXCEEDED

    def test_case_insensitive(self) -> None:
        assert categorize_error("NETWORK unreachable") == ErrorCategory.NETWORK_ERROR

    def test_provider_not_used_for_matching(self) -> None:
        assert categorize_error("boom", "network-provider") == ErrorCategory.UNKNOWN_ERROR

    def test_error_category_property(self) -> None:
        error = ProviderCallError("anthropic", "Connection refused", retryable=True)
        assert error.category == ErrorCategory.NETWORK_ERROR


class TestDeriveErrorCode:
    """Tests for machine error codes."""

    @pytest.mark.parametrize(
        "status_code, message, expected",
        [
            (401, "Incorrect API key", "unauthorized"),
            (429, "Too many requests", "rate_limited"),
            (None, "insufficient_quota", "rate_limited"),
            (404, "The model gpt-9 was not found", "invalid_model"),
            (400, "This model's maximum context length is 128000 tokens", "context_length_exceeded"),
            (400, "Invalid value for response_format", "invalid_request"),
            (402, "Billing hard limit reached", "billing_issue"),
            (500, "Internal server error", None),
            (None, "", None),
        ],
    )
    def test_codes(self, status_code, message, expected) -> None:
        assert derive_error_code(status_code, message) == expected

    def test_context_needs_400(self) -> None:
        assert derive_error_code(500, "context deadline") is None


class TestErrorReporter:
    """Tests for the rolling error buffer."""

    def test_report_classifies(self) -> None:
        reporter = ErrorReporter()
        error = reporter.report("openai", "Rate limit exceeded", details={"attempt": 1})
        assert error.type == ErrorCategory.QUOTA_EXCEEDED
        assert error.provider == "openai"
        assert error.details == {"attempt": 1}
        assert len(reporter) == 1

    def test_capacity_drops_oldest(self) -> None:
        reporter = ErrorReporter(capacity=3)
        for i in range(5):
            reporter.report("google", f"error {i}")

        messages = [error.message for error in reporter.get_last_errors(10)]
        assert messages == ["error 2", "error 3", "error 4"]

    def test_default_capacity(self) -> None:
        reporter = ErrorReporter()
        for i in range(60):
            reporter.report("google", f"error {i}")
        assert len(reporter) == 50

    def test_last_errors_oldest_first(self) -> None:
        reporter = ErrorReporter()
        for i in range(4):
            reporter.report("openai", f"error {i}")
        assert [e.message for e in reporter.get_last_errors(2)] == ["error 2", "error 3"]
        assert reporter.get_last_errors(0) == []

    def test_summary(self) -> None:
        reporter = ErrorReporter()
        assert reporter.get_error_summary() == "No errors recorded"

        reporter.report("openai", "quota exceeded")
        reporter.report("anthropic", "quota exceeded")
        reporter.report("google", "connection refused")
        assert reporter.get_error_counts() == {"QUOTA_EXCEEDED": 2, "NETWORK_ERROR": 1}
        assert reporter.get_error_summary() == "Error summary: QUOTA_EXCEEDED: 2, NETWORK_ERROR: 1"

    def test_diagnostic_report(self) -> None:
        reporter = ErrorReporter()
        for i in range(4):
            reporter.report("anthropic", f"failure {i}", details={"status_code": 500})

        report = reporter.generate_diagnostic_report()
        assert report.startswith("AI Extraction Diagnostic Report")
        assert "Recent Errors:" in report
        assert "failure 0" not in report
        assert "1. UNKNOWN_ERROR (anthropic)" in report
        assert "   Message: failure 3" in report
        assert '"status_code": 500' in report
        assert "5. Review provider-specific error messages" in report

    def test_clear(self) -> None:
        reporter = ErrorReporter()
        reporter.report("openai", "boom")
        reporter.clear()
        assert len(reporter) == 0


class TestProviderDigest:
    """Tests for the per-provider status digest."""

    def test_stable_order_and_tags(self) -> None:
        runs = [
            LLMRun(provider="google", success=False, error="Connection reset"),
            LLMRun(provider="anthropic", success=False, status_code=401, error_code="unauthorized", error="bad key"),
            LLMRun(provider="openai", success=False, status_code=429, error_code="rate_limited", error="Rate limit"),
        ]
        assert format_provider_digest(runs) == "\n".join(
            [
                "AI analysis unavailable.",
                "🚀 openai - QUOTA (429) [rate_limited]: Rate limit",
                "🤖 anthropic - AUTH (401) [unauthorized]: bad key",
                "🧠 google - KO: Connection reset",
            ]
        )

    def test_success_wins_over_failures(self) -> None:
        runs = [
            LLMRun(provider="openai", success=False, status_code=500, error="boom"),
            LLMRun(provider="openai", success=True),
            LLMRun(provider="openai", success=False, status_code=500, error="boom again"),
        ]
        assert format_provider_digest(runs, header="AI self-test") == "AI self-test\n🚀 openai - OK"

    def test_last_failure_shown(self) -> None:
        runs = [
            LLMRun(provider="google", success=False, error="first"),
            LLMRun(provider="google", success=False, error_code="invalid_model", error="second"),
        ]
        assert format_provider_digest(runs).splitlines()[1] == "🧠 google - MODEL [invalid_model]: second"

    def test_message_truncated_and_collapsed(self) -> None:
        runs = [LLMRun(provider="openai", success=False, error="line one\n\n  line two " + "x" * 300)]
        line = format_provider_digest(runs).splitlines()[1]
        message = line.split(": ", 1)[1]
        assert message.startswith("line one line two x")
        assert len(message) <= 140

    def test_unknown_provider_last(self) -> None:
        runs = [
            LLMRun(provider="mistral", success=False, error="down"),
            LLMRun(provider="anthropic", success=True),
        ]
        lines = format_provider_digest(runs).splitlines()
        assert lines[1] == "🤖 anthropic - OK"
        assert lines[2] == "• mistral - KO: down"

    def test_no_runs(self) -> None:
        assert format_provider_digest([]) == "Unknown orchestrator failure."


class TestFormatErrorMessage:
    """Tests for operator-facing error messages."""

    def test_plain_message(self) -> None:
        assert format_error_message(ValueError("boom"), "Extraction failed") == "Extraction failed: boom"

    def test_insights(self) -> None:
        message = format_error_message(
            RuntimeError("429 from provider while parsing PDF"),
            "openai failed after 4 attempt(s)",
        )
        assert message == (
            "openai failed after 4 attempt(s): 429 from provider while parsing PDF "
            "(Rate limited - wait before retry or check quotas, "
            "PDF processing issue - try text extraction fallback)"
        )

    def test_uses_message_attribute(self) -> None:
        error = ProviderCallError("openai", "max_tokens is too large", 400)
        assert format_error_message(error, "Run failed") == (
            "Run failed: max_tokens is too large (API parameter error - check token limits)"
        )

    def test_auth_insight(self) -> None:
        assert format_error_message("403 Forbidden", "ctx").endswith("(Authentication failed - verify API keys)")
