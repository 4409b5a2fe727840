"""Google Gemini provider adapter (REST generateContent)."""

from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any

import httpx

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.types import DocumentInput, LLMOptions, LLMResponse

logger = logging.getLogger(__name__)

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GoogleAdapter(ProviderAdapter):
    """Adapter for Gemini models via the Generative Language REST API.

    PDFs are sent inline as base64 ``inlineData`` parts.
    """

    name = "google"
    supports_pdf = True
    supports_json_mode = True

    def __init__(
        self,
        model: str = "gemini-1.5-pro",
        api_key: str | None = None,
        base_url: str = GOOGLE_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ):
        """Initialize Google adapter.

        Args:
            model: Default model name (e.g., "gemini-1.5-pro")
            api_key: Google API key (defaults to GOOGLE_API_KEY env var)
            base_url: API base URL
            transport: Optional httpx transport
            **kwargs: Additional configuration
        """
        super().__init__(model, **kwargs)

        self._api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self._api_key:
            raise ValueError("Google API key required")

        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _parts(self, input: str | DocumentInput) -> list[dict[str, Any]]:
        if isinstance(input, str):
            return [{"text": input}]
        return [
            {"text": f"Extract the requested data from {input.filename}."},
            {
                "inlineData": {
                    "mimeType": "application/pdf",
                    "data": base64.b64encode(input.data).decode("ascii"),
                }
            },
        ]

    def build_body(self, input: str | DocumentInput, options: LLMOptions) -> dict[str, Any]:
        """Request body for generateContent."""
        generation_config: dict[str, Any] = {
            "maxOutputTokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.json_schema:
            generation_config["responseMimeType"] = "application/json"
        if options.stop_sequences:
            generation_config["stopSequences"] = options.stop_sequences

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": self._parts(input)}],
            "generationConfig": generation_config,
        }
        system_prompt = self.build_system_prompt(options)
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            return str(payload["error"].get("message") or payload["error"])
        return response.text

    async def complete(
        self,
        input: str | DocumentInput,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Execute completion with a Gemini model."""
        options = options or LLMOptions()
        model = self.resolve_model(options)
        start_time = time.time()

        logger.debug(f"Google request: model={model}, pdf={isinstance(input, DocumentInput)}")

        try:
            response = await self.client.post(
                f"/models/{model}:generateContent",
                json=self.build_body(input, options),
                timeout=None,
            )
        except httpx.HTTPError as e:
            latency = (time.time() - start_time) * 1000
            raise self.provider_error(f"Google API network error after {latency:.0f}ms: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            raise self.provider_error(f"Google API error: {message}", response.status_code)

        data = response.json()
        candidates = data.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts", []) if candidates else []
        content = "".join(part.get("text", "") for part in parts)

        usage = data.get("usageMetadata") or {}
        latency = (time.time() - start_time) * 1000
        return LLMResponse(
            content=content,
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
            model=model,
            latency_ms=latency,
        )
