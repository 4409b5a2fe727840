"""Core types for the AI orchestration layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderName(str, Enum):
    """LLM providers the orchestrator knows how to rank."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


# Stable priority used to pick the primary result and to order digests
PROVIDER_PRIORITY: tuple[str, ...] = (
    ProviderName.OPENAI.value,
    ProviderName.ANTHROPIC.value,
    ProviderName.GOOGLE.value,
)


def provider_rank(provider: str) -> int:
    """Position of a provider in the stable priority order (unknown last)."""
    try:
        return PROVIDER_PRIORITY.index(provider)
    except ValueError:
        return len(PROVIDER_PRIORITY)


class DocumentInput(BaseModel):
    """A binary document handed to a provider as-is."""

    model_config = ConfigDict(frozen=True)

    type: Literal["pdf"] = "pdf"
    data: bytes
    filename: str


class LLMOptions(BaseModel):
    """Per-call options passed through to a provider adapter."""

    model_config = ConfigDict(frozen=True)

    model: str | None = Field(default=None, description="Override the adapter's default model")
    models: dict[str, str] | None = Field(
        default=None,
        description="Per-provider model overrides, keyed by provider name",
    )
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    system_prompt: str | None = Field(default=None)
    json_schema: dict[str, Any] | None = Field(default=None)
    stop_sequences: list[str] | None = Field(default=None)


class LLMResponse(BaseModel):
    """Raw response from a provider adapter."""

    content: str = Field(default="")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    model: str = Field(default="")
    latency_ms: float = Field(default=0.0)
    success: bool = Field(default=True)
    error: str | None = Field(default=None)

    @property
    def billable(self) -> bool:
        """Whether the provider reported consuming any tokens."""
        return (self.input_tokens + self.output_tokens) > 0


# =============================================================================
# Orchestration policies
# =============================================================================


class SingleSourcePolicy(BaseModel):
    """One call to one provider."""

    model_config = ConfigDict(frozen=True)

    type: Literal["single-source"] = "single-source"
    provider: str = Field(default=ProviderName.OPENAI.value)


class SelfConsistencyPolicy(BaseModel):
    """N calls to the same provider, reconciled field by field."""

    model_config = ConfigDict(frozen=True)

    type: Literal["self-consistency"] = "self-consistency"
    provider: str = Field(default=ProviderName.OPENAI.value)
    runs: int = Field(default=3, ge=1, le=10)


class CrossCritiquePolicy(BaseModel):
    """One call to each of several distinct providers."""

    model_config = ConfigDict(frozen=True)

    type: Literal["cross-critique"] = "cross-critique"
    providers: list[str] = Field(
        default_factory=lambda: list(PROVIDER_PRIORITY),
        min_length=1,
    )

    @field_validator("providers")
    @classmethod
    def _distinct(cls, providers: list[str]) -> list[str]:
        if len(set(providers)) != len(providers):
            raise ValueError("cross-critique providers must be distinct")
        return providers


OrchestrationPolicy = Annotated[
    Union[SingleSourcePolicy, SelfConsistencyPolicy, CrossCritiquePolicy],
    Field(discriminator="type"),
]


# =============================================================================
# Task input / output
# =============================================================================


class TaskInput(BaseModel):
    """A single orchestration request. Immutable per invocation."""

    input: str | DocumentInput
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    analysis: str | None = Field(
        default=None,
        description="Optional analysis kind tag (see vinexport.core.ai.schemas)",
    )
    context: dict[str, Any] = Field(default_factory=dict)
    policy: OrchestrationPolicy = Field(default_factory=SingleSourcePolicy)
    options: LLMOptions = Field(default_factory=LLMOptions)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def language(self) -> str | None:
        """Language hint used for cache keys."""
        lang = self.context.get("lang") or self.context.get("language")
        return str(lang) if lang else None

    @property
    def source_text(self) -> str | None:
        """Text that extracted evidence can be checked against."""
        if isinstance(self.input, str):
            return self.input
        text = self.context.get("source_text")
        return text if isinstance(text, str) else None


class ExecutionContext(BaseModel):
    """Ledger identifiers and task-wide limits for one run_task call."""

    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str | None = Field(default=None)
    organization_id: str | None = Field(default=None)
    timeout_ms: int | None = Field(default=None, gt=0, description="Task-wide timeout")


class LLMRun(BaseModel):
    """Record of one provider invocation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    provider: str
    model: str = Field(default="")
    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    cost: float = Field(default=0.0)
    latency_ms: float = Field(default=0.0)
    success: bool
    error: str | None = Field(default=None)
    status_code: int | None = Field(default=None)
    error_code: str | None = Field(default=None)
    prompt_hash: str = Field(default="")
    cache_hit: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskMetadata(BaseModel):
    """Run metadata attached to every task output."""

    policy: OrchestrationPolicy
    runs: list[LLMRun] = Field(default_factory=list)
    total_cost: float = Field(default=0.0)
    total_latency_ms: float = Field(default=0.0)
    cache_hit: bool = Field(default=False)
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    validation_report: dict[str, Any] | None = Field(default=None)
    agreement: dict[str, float] | None = Field(default=None)


class TaskOutput(BaseModel):
    """Result of executing a task through the orchestration layer."""

    result: Any
    metadata: TaskMetadata


# =============================================================================
# Guardrails
# =============================================================================


class GuardrailsConfig(BaseModel):
    """Static ceilings, set once at construction."""

    model_config = ConfigDict(frozen=True)

    max_tokens_per_task: int = Field(default=150_000, gt=0)
    max_cost_per_task: float = Field(default=5.0, gt=0)
    max_cost_per_project: float = Field(default=50.0, gt=0)
    max_cost_per_organization: float = Field(default=500.0, gt=0)
    timeout_ms: int = Field(default=120_000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_ms: int = Field(default=1000, ge=0)

    # Placeholder rate for admission estimates; real run costs use MODEL_PRICING
    estimated_cost_per_1k_tokens: float = Field(default=0.03, ge=0)

    failure_threshold: int = Field(default=5, gt=0)
    cooldown_ms: int = Field(default=60_000, ge=0)


class AdmissionDecision(BaseModel):
    """Outcome of a pre-execution guardrail check."""

    allowed: bool
    reason: str | None = None


class BreakerState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreakerState(BaseModel):
    """Per-provider failure tracking snapshot."""

    failures: int = 0
    last_failure: float = 0.0
    state: BreakerState = BreakerState.CLOSED


# Model pricing per 1M tokens (approximate, update as needed)
MODEL_PRICING: dict[str, dict[str, float]] = {
    # OpenAI
    "openai/gpt-4o": {"input": 2.5, "output": 10.0},
    "openai/gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "openai/gpt-4.1": {"input": 2.0, "output": 8.0},
    "openai/gpt-4.1-mini": {"input": 0.40, "output": 1.60},

    # Anthropic
    "anthropic/claude-3-5-sonnet-20240620": {"input": 3.0, "output": 15.0},
    "anthropic/claude-sonnet-4-5": {"input": 3.0, "output": 15.0},
    "anthropic/claude-3-5-haiku-latest": {"input": 0.8, "output": 4.0},

    # Google
    "google/gemini-1.5-pro": {"input": 1.25, "output": 5.0},
    "google/gemini-1.5-flash": {"input": 0.075, "output": 0.30},
    "google/gemini-2.0-flash": {"input": 0.10, "output": 0.40},
}

DEFAULT_PRICING: dict[str, float] = {"input": 1.0, "output": 2.0}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Calculate cost for a model call.

    Args:
        model: Full model id, "<provider>/<model>"
        input_tokens: Prompt tokens consumed
        output_tokens: Completion tokens produced

    Returns:
        Cost in USD
    """
    pricing = MODEL_PRICING.get(model, DEFAULT_PRICING)
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost
