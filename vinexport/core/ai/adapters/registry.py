"""Provider registry for managing adapters."""

from __future__ import annotations

import logging
from typing import Any

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.types import PROVIDER_PRIORITY, provider_rank

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry of configured provider adapters, keyed by provider name.

    Constructed explicitly and injected into the orchestrator.
    """

    def __init__(self, adapters: list[ProviderAdapter] | None = None):
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    @classmethod
    def from_settings(cls, settings: Any) -> ProviderRegistry:
        """Build adapters for every provider with an API key configured.

        Args:
            settings: Object exposing ``<provider>_api_key`` and
                ``<provider>_model`` attributes

        Returns:
            ProviderRegistry with the configured adapters
        """
        from vinexport.core.ai.adapters.anthropic_adapter import AnthropicAdapter
        from vinexport.core.ai.adapters.google_adapter import GoogleAdapter
        from vinexport.core.ai.adapters.openai_adapter import OpenAIAdapter

        registry = cls()
        factories = {
            "openai": OpenAIAdapter,
            "anthropic": AnthropicAdapter,
            "google": GoogleAdapter,
        }
        for provider, factory in factories.items():
            api_key = getattr(settings, f"{provider}_api_key", None)
            if not api_key:
                logger.info(f"Provider {provider} not configured (no API key)")
                continue
            model = getattr(settings, f"{provider}_model", None)
            kwargs: dict[str, Any] = {"api_key": api_key}
            if model:
                kwargs["model"] = model
            registry.register(factory(**kwargs))

        return registry

    def register(self, adapter: ProviderAdapter, name: str | None = None) -> None:
        """Register an adapter under its provider name (or an explicit one)."""
        self._adapters[name or adapter.name] = adapter

    def get(self, name: str) -> ProviderAdapter:
        """Get the adapter for a provider.

        Raises:
            KeyError: If the provider is not configured
        """
        try:
            return self._adapters[name]
        except KeyError:
            raise KeyError(f"Provider not configured: {name}") from None

    def names(self) -> list[str]:
        """Configured providers in priority order (openai, anthropic, google first)."""
        return sorted(self._adapters, key=provider_rank)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    async def check_health(self) -> dict[str, dict[str, Any]]:
        """Health-check every configured provider.

        Returns:
            Dict mapping provider names to health status
        """
        results = {}
        for name in self.names():
            results[name] = await self._adapters[name].health_check()
        return results

    async def aclose(self) -> None:
        """Close adapters that hold open HTTP clients."""
        for adapter in self._adapters.values():
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()


__all__ = ["ProviderRegistry", "PROVIDER_PRIORITY"]
