"""API configuration via pydantic-settings."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vinexport.core.ai.adapters import ProviderRegistry
from vinexport.core.ai.types import GuardrailsConfig
from vinexport.core.cache import DEFAULT_TTL_MS, ResponseCache
from vinexport.core.documents import DEFAULT_CHUNK_CHARS

# Model settings must be model names, not pasted API keys
API_KEY_PATTERN = re.compile(r"^(sk-|AIza)")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="VINEXPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API configuration
    api_title: str = "Vinexport AI API"
    api_version: str = "0.1.0"
    cors_origins: list[str] = ["*"]

    # === PROVIDERS ===
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-sonnet-20240620"
    google_api_key: str | None = None
    google_model: str = "gemini-1.5-pro"

    # === GUARDRAILS ===
    max_tokens_per_task: int = 150_000
    max_cost_per_task: float = 5.0
    max_cost_per_project: float = 50.0
    max_cost_per_organization: float = 500.0
    timeout_ms: int = 120_000
    max_retries: int = 3
    retry_base_delay_ms: int = 1000
    estimated_cost_per_1k_tokens: float = 0.03
    breaker_failure_threshold: int = 5
    breaker_cooldown_ms: int = 60_000

    # === CACHE ===
    cache_ttl_ms: int = DEFAULT_TTL_MS
    cache_max_entries: int = 1000
    cache_evict_count: int = 200

    # === DOCUMENTS ===
    chunk_max_chars: int = Field(default=DEFAULT_CHUNK_CHARS, gt=0)

    # === DIAGNOSTICS ===
    error_history: int = 50

    @field_validator("openai_model", "anthropic_model", "google_model")
    @classmethod
    def check_model_name(cls, value: str, info: ValidationInfo) -> str:
        if API_KEY_PATTERN.match(value):
            key_field = info.field_name.replace("_model", "_api_key")
            raise ValueError(
                f"{info.field_name} looks like an API key (starts with sk- or AIza); "
                f"move it to {key_field} and set a model name"
            )
        return value

    @property
    def configured_providers(self) -> list[str]:
        """Providers with an API key set."""
        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        return [name for name, key in keys.items() if key]

    def guardrails_config(self) -> GuardrailsConfig:
        return GuardrailsConfig(
            max_tokens_per_task=self.max_tokens_per_task,
            max_cost_per_task=self.max_cost_per_task,
            max_cost_per_project=self.max_cost_per_project,
            max_cost_per_organization=self.max_cost_per_organization,
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            retry_base_delay_ms=self.retry_base_delay_ms,
            estimated_cost_per_1k_tokens=self.estimated_cost_per_1k_tokens,
            failure_threshold=self.breaker_failure_threshold,
            cooldown_ms=self.breaker_cooldown_ms,
        )

    def build_cache(self) -> ResponseCache:
        return ResponseCache(
            max_entries=self.cache_max_entries,
            evict_count=self.cache_evict_count,
            default_ttl_ms=self.cache_ttl_ms,
        )

    def build_registry(self) -> ProviderRegistry:
        """Adapters for every provider with an API key configured."""
        return ProviderRegistry.from_settings(self)
