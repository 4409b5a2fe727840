"""Shared fixtures: scripted provider adapters and fast guardrails."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest

from vinexport.core.ai.adapters import ProviderAdapter, ProviderRegistry
from vinexport.core.ai.errors import ProviderCallError
from vinexport.core.ai.guardrails import Guardrails
from vinexport.core.ai.orchestrator import AIOrchestrator
from vinexport.core.ai.types import DocumentInput, GuardrailsConfig, LLMOptions, LLMResponse
from vinexport.core.cache import ResponseCache
from vinexport.core.diagnostics import ErrorReporter


class FakeAdapter(ProviderAdapter):
    """Adapter that replays a script of results and exceptions.

    Dicts are returned as JSON content, strings as-is, LLMResponse objects
    verbatim and exceptions are raised.
    """

    supports_pdf = True
    supports_json_mode = True

    def __init__(
        self,
        name: str,
        script: list[Any] | None = None,
        model: str = "fake-model",
        delay: float = 0.0,
        input_tokens: int = 100,
        output_tokens: int = 50,
        supports_pdf: bool = True,
    ):
        super().__init__(model)
        self.name = name
        self.supports_pdf = supports_pdf
        self.script = list(script or [])
        self.delay = delay
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: list[tuple[str | DocumentInput, LLMOptions | None]] = []

    async def complete(
        self,
        input: str | DocumentInput,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        self.calls.append((input, options))
        if isinstance(input, DocumentInput) and not self.supports_pdf:
            raise self.unsupported_document(input)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.script:
            raise ProviderCallError(self.name, f"{self.name}: script exhausted", retryable=False)

        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item

        content = item if isinstance(item, str) else json.dumps(item)
        return LLMResponse(
            content=content,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=self.model,
            latency_ms=1.0,
        )

    @property
    def call_cost(self) -> float:
        """Cost of one scripted successful call."""
        return self.get_cost(self.input_tokens, self.output_tokens)


def provider_failure(
    provider: str,
    message: str = "Internal server error",
    status_code: int | None = 500,
    error_code: str | None = None,
    retryable: bool = True,
) -> ProviderCallError:
    return ProviderCallError(provider, message, status_code, error_code, retryable)


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the guardrails, in seconds."""
    return []


@pytest.fixture
def make_guardrails(sleeps: list[float]) -> Callable[..., Guardrails]:
    """Guardrails with a recording sleep and a 10ms retry base delay."""

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def factory(**overrides: Any) -> Guardrails:
        config = GuardrailsConfig(**{"retry_base_delay_ms": 10, **overrides})
        return Guardrails(config, sleep=fake_sleep)

    return factory


@pytest.fixture
def make_orchestrator(make_guardrails: Callable[..., Guardrails]) -> Callable[..., AIOrchestrator]:
    """Orchestrator over the given fake adapters."""

    def factory(
        *adapters: ProviderAdapter,
        guardrails: Guardrails | None = None,
        chunk_max_chars: int = 6000,
        **config: Any,
    ) -> AIOrchestrator:
        return AIOrchestrator(
            registry=ProviderRegistry(list(adapters)),
            guardrails=guardrails or make_guardrails(**config),
            cache=ResponseCache(),
            reporter=ErrorReporter(),
            chunk_max_chars=chunk_max_chars,
        )

    return factory


@pytest.fixture
def wine_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "vintage": {"type": "integer"},
            "region": {"type": "string"},
        },
    }
