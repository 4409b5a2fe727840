"""OpenAI provider adapter."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import tiktoken
from openai import APIStatusError, AsyncOpenAI

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.types import DocumentInput, LLMOptions, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI chat models (text input only)."""

    name = "openai"
    supports_pdf = False
    supports_json_mode = True

    def __init__(self, model: str = "gpt-4o-mini", api_key: str | None = None, **kwargs: Any):
        """Initialize OpenAI adapter.

        Args:
            model: Default model name (e.g., "gpt-4o-mini", "gpt-4o")
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            **kwargs: Additional configuration
        """
        super().__init__(model, **kwargs)

        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self._api_key:
            raise ValueError("OpenAI API key required")

        # Initialize client lazily
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def complete(
        self,
        input: str | DocumentInput,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Execute completion with an OpenAI model."""
        if isinstance(input, DocumentInput):
            raise self.unsupported_document(input)

        options = options or LLMOptions()
        model = self.resolve_model(options)
        start_time = time.time()

        messages = []
        system_prompt = self.build_system_prompt(options)
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": input})

        params: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.json_schema:
            params["response_format"] = {"type": "json_object"}
        if options.stop_sequences:
            params["stop"] = options.stop_sequences

        logger.debug(f"OpenAI request: model={model}, json={bool(options.json_schema)}")

        try:
            response = await self.client.chat.completions.create(**params)
        except APIStatusError as e:
            raise self.provider_error(f"OpenAI API error: {e.message}", e.status_code) from e
        except Exception as e:
            latency = (time.time() - start_time) * 1000
            raise self.provider_error(f"OpenAI API error after {latency:.0f}ms: {e}") from e

        latency = (time.time() - start_time) * 1000
        return LLMResponse(
            content=response.choices[0].message.content or "",
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            model=model,
            latency_ms=latency,
        )

    def estimate_tokens(self, text: str) -> int:
        """Count tokens with the model's tiktoken encoding."""
        try:
            encoding = tiktoken.encoding_for_model(self.model)
        except KeyError:
            encoding = tiktoken.get_encoding("o200k_base")
        return len(encoding.encode(text))
