"""Anthropic Claude provider adapter."""

from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any

from anthropic import APIStatusError, AsyncAnthropic

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.types import DocumentInput, LLMOptions, LLMResponse

logger = logging.getLogger(__name__)


class AnthropicAdapter(ProviderAdapter):
    """Adapter for Anthropic Claude models. Reads PDFs as document blocks."""

    name = "anthropic"
    supports_pdf = True
    supports_json_mode = False  # Claude uses prompt-based JSON

    # Output ceilings per model family
    MAX_OUTPUT = {
        "claude-sonnet-4-5": 16000,
        "claude-3-5-sonnet-20240620": 8192,
        "claude-3-5-haiku-latest": 8192,
    }

    def __init__(
        self,
        model: str = "claude-3-5-sonnet-20240620",
        api_key: str | None = None,
        **kwargs: Any,
    ):
        """Initialize Anthropic adapter.

        Args:
            model: Default model name
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            **kwargs: Additional configuration
        """
        super().__init__(model, **kwargs)

        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("Anthropic API key required")

        # Initialize client lazily
        self._client: AsyncAnthropic | None = None

    @property
    def client(self) -> AsyncAnthropic:
        """Get or create the Anthropic client."""
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    def _content(self, input: str | DocumentInput) -> str | list[dict[str, Any]]:
        if isinstance(input, str):
            return input
        return [
            {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": base64.b64encode(input.data).decode("ascii"),
                },
            },
            {"type": "text", "text": f"Extract the requested data from {input.filename}."},
        ]

    async def complete(
        self,
        input: str | DocumentInput,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Execute completion with a Claude model."""
        options = options or LLMOptions()
        model = self.resolve_model(options)
        start_time = time.time()

        params: dict[str, Any] = {
            "model": model,
            "max_tokens": min(options.max_tokens, self.MAX_OUTPUT.get(model, 4096)),
            "temperature": options.temperature,
            "messages": [{"role": "user", "content": self._content(input)}],
        }
        system_prompt = self.build_system_prompt(options)
        if system_prompt:
            params["system"] = system_prompt
        if options.stop_sequences:
            params["stop_sequences"] = options.stop_sequences

        logger.debug(f"Anthropic request: model={model}, pdf={isinstance(input, DocumentInput)}")

        try:
            response = await self.client.messages.create(**params)
        except APIStatusError as e:
            raise self.provider_error(f"Anthropic API error: {e.message}", e.status_code) from e
        except Exception as e:
            latency = (time.time() - start_time) * 1000
            raise self.provider_error(f"Anthropic API error after {latency:.0f}ms: {e}") from e

        latency = (time.time() - start_time) * 1000
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            content=content,
            input_tokens=response.usage.input_tokens if response.usage else 0,
            output_tokens=response.usage.output_tokens if response.usage else 0,
            model=model,
            latency_ms=latency,
        )

    def estimate_tokens(self, text: str) -> int:
        """Estimate tokens for Claude, slightly more conservative than 4 chars/token."""
        return int(len(text) / 3.5)
