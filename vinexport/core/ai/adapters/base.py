"""Base provider adapter interface."""

from __future__ import annotations

import json
import re
import time
from abc import ABC, abstractmethod
from typing import Any

from vinexport.core.ai.errors import ProviderCallError
from vinexport.core.ai.types import DocumentInput, LLMOptions, LLMResponse, calculate_cost
from vinexport.core.diagnostics.classifier import derive_error_code


class ProviderAdapter(ABC):
    """Base class for provider-specific adapters.

    Adapters translate a task input (text or PDF) plus options into one
    provider call and return an LLMResponse. Failures are raised as
    ProviderCallError carrying the HTTP status and a derived error code.
    """

    name: str = "base"
    supports_pdf: bool = False
    supports_json_mode: bool = False

    def __init__(self, model: str, **kwargs: Any):
        """Initialize the adapter with a default model id and optional config."""
        self.model = model
        self._config = kwargs

    @abstractmethod
    async def complete(
        self,
        input: str | DocumentInput,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Execute one completion request.

        Args:
            input: Prompt text, or a PDF document
            options: Model, token, temperature and schema options

        Returns:
            LLMResponse with content and token usage

        Raises:
            ProviderCallError: On any provider-side failure
        """

    def resolve_model(self, options: LLMOptions | None = None) -> str:
        """Model for this call: per-provider override, then ``model``, then the default."""
        if options is None:
            return self.model
        if options.models and options.models.get(self.name):
            return options.models[self.name]
        return options.model or self.model

    def get_model_id(self, model: str | None = None) -> str:
        """Get the full model identifier."""
        return f"{self.name}/{model or self.model}"

    def get_cost(self, input_tokens: int, output_tokens: int, model: str | None = None) -> float:
        return calculate_cost(self.get_model_id(model), input_tokens, output_tokens)

    def build_system_prompt(self, options: LLMOptions) -> str | None:
        """System prompt with the expected JSON shape appended, if any."""
        if not options.json_schema:
            return options.system_prompt

        schema_text = json.dumps(options.json_schema, ensure_ascii=False)
        instruction = (
            "Respond with valid JSON only, matching this JSON schema. "
            "Do not wrap the JSON in markdown code blocks.\n"
            f"{schema_text}"
        )
        if options.system_prompt:
            return f"{options.system_prompt}\n\n{instruction}"
        return instruction

    def provider_error(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> ProviderCallError:
        """Build a ProviderCallError with a derived error code."""
        return ProviderCallError(
            provider=self.name,
            message=message,
            status_code=status_code,
            error_code=derive_error_code(status_code, message),
            retryable=retryable,
        )

    def unsupported_document(self, document: DocumentInput) -> ProviderCallError:
        return ProviderCallError(
            provider=self.name,
            message=f"PDF_NOT_SUPPORTED: {self.name} adapter cannot read {document.filename}",
            error_code="pdf_not_supported",
            retryable=False,
        )

    def parse_response(self, response: str) -> Any:
        """Parse a JSON response, tolerating code fences and surrounding text.

        Returns:
            Parsed JSON, or ``{"raw": ..., "parse_error": True}``
        """
        cleaned = response.strip()
        fence = re.match(r"^```(?:json)?\s*([\s\S]*?)\s*```$", cleaned)
        if fence:
            cleaned = fence.group(1)

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            json_match = re.search(r"\{[\s\S]*\}", response)
            if json_match:
                try:
                    return json.loads(json_match.group())
                except json.JSONDecodeError:
                    pass
            return {"raw": response, "parse_error": True}

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for text.

        This is a rough estimate. Override for model-specific tokenization.
        """
        # Rough estimate: ~4 characters per token
        return len(text) // 4

    async def health_check(self) -> dict[str, Any]:
        """Check if the provider is available and responsive.

        Returns:
            Dict with 'healthy' bool and optional 'latency_ms', or the error
            with its status code and derived error code
        """
        start = time.time()
        try:
            await self.complete("Say 'ok'", LLMOptions(max_tokens=10, temperature=0))
        except ProviderCallError as e:
            return {
                "healthy": False,
                "error": e.message,
                "status_code": e.status_code,
                "error_code": e.error_code,
            }
        latency = (time.time() - start) * 1000
        return {"healthy": True, "latency_ms": latency}
