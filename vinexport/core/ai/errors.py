"""Exceptions raised by the orchestration layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from vinexport.core.diagnostics.classifier import ErrorCategory, categorize_error

if TYPE_CHECKING:
    from vinexport.core.ai.types import LLMResponse, LLMRun


class OrchestrationError(Exception):
    """Base class for orchestration failures."""

    def __init__(self, message: str, code: str = "orchestration_error"):
        self.message = message
        self.code = code
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        return categorize_error(self.message)


class AdmissionRejectedError(OrchestrationError):
    """Raised when a task breaches a guardrail ceiling before execution."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Task rejected by guardrails: {reason}", "admission_rejected")


class CircuitOpenError(OrchestrationError):
    """Raised when a provider's circuit breaker rejects a call."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Circuit breaker open for provider {provider}", "circuit_open")


class ProviderTimeoutError(OrchestrationError):
    """Raised when a provider call exceeds its time budget."""

    def __init__(self, timeout_ms: float, provider: str | None = None):
        self.timeout_ms = timeout_ms
        self.provider = provider
        super().__init__(f"Operation timed out after {timeout_ms:g}ms", "timeout")


class ProviderCallError(OrchestrationError):
    """Raised when a provider call returns or throws an error."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        retryable: bool = True,
        response: LLMResponse | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable
        self.response = response
        super().__init__(message, error_code or "provider_error")


class InvalidResponseError(ProviderCallError):
    """Raised when a provider answered but the answer is unusable.

    Keeps the response so the tokens it consumed are still billed.
    """

    def __init__(self, provider: str, message: str, response: LLMResponse):
        super().__init__(provider, message, error_code="invalid_response", response=response)


class RetriesExhaustedError(OrchestrationError):
    """Raised when every retry attempt against a provider failed."""

    def __init__(
        self,
        provider: str,
        attempts: int,
        last_error: BaseException | None = None,
        runs: list[LLMRun] | None = None,
    ):
        self.provider = provider
        self.attempts = attempts
        self.last_error = last_error
        self.runs = runs or []
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(
            f"Provider {provider} failed after {attempts} attempt(s){detail}",
            "retries_exhausted",
        )

    @property
    def category(self) -> ErrorCategory:
        if self.last_error is None:
            return ErrorCategory.UNKNOWN_ERROR
        return categorize_error(str(self.last_error), self.provider)


class AllProvidersFailedError(OrchestrationError):
    """Raised when no provider produced a usable result."""

    def __init__(self, runs: list[LLMRun], digest: str):
        self.runs = runs
        self.digest = digest
        super().__init__(digest, "all_providers_failed")


class SchemaValidationError(OrchestrationError):
    """Raised when a provider result does not fit the requested analysis model."""

    def __init__(self, analysis: str, errors: list[dict[str, Any]]):
        self.analysis = analysis
        self.errors = errors
        super().__init__(
            f"Result does not match {analysis} schema ({len(errors)} error(s))",
            "schema_validation",
        )


class InvalidTaskError(OrchestrationError):
    """Raised when a task's options cannot be applied to its policy."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_task")
