"""Provider adapters for the LLM providers the orchestrator can call."""

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.adapters.openai_adapter import OpenAIAdapter
from vinexport.core.ai.adapters.anthropic_adapter import AnthropicAdapter
from vinexport.core.ai.adapters.google_adapter import GoogleAdapter
from vinexport.core.ai.adapters.registry import ProviderRegistry

__all__ = [
    "ProviderAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "ProviderRegistry",
]
