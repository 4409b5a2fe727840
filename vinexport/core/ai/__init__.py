"""AI orchestration layer for vinexport.

Runs extraction and analysis tasks across OpenAI, Anthropic and Google:
- Orchestration policies (single-source, self-consistency, cross-critique)
- Guardrails: cost ceilings and ledgers, timeouts, retries, circuit breakers
- Typed analysis kinds with default policies
- Quality scoring and field-level agreement
"""

from vinexport.core.ai.types import (
    ProviderName,
    PROVIDER_PRIORITY,
    DocumentInput,
    LLMOptions,
    LLMResponse,
    SingleSourcePolicy,
    SelfConsistencyPolicy,
    CrossCritiquePolicy,
    OrchestrationPolicy,
    TaskInput,
    ExecutionContext,
    LLMRun,
    TaskMetadata,
    TaskOutput,
    GuardrailsConfig,
    AdmissionDecision,
    BreakerState,
    CircuitBreakerState,
    calculate_cost,
)
from vinexport.core.ai.errors import (
    OrchestrationError,
    AdmissionRejectedError,
    CircuitOpenError,
    ProviderTimeoutError,
    ProviderCallError,
    InvalidResponseError,
    RetriesExhaustedError,
    AllProvidersFailedError,
    SchemaValidationError,
    InvalidTaskError,
)
from vinexport.core.ai.guardrails import Guardrails
from vinexport.core.ai.schemas import AnalysisKind, get_analysis, validate_analysis
from vinexport.core.ai.adapters import (
    ProviderAdapter,
    OpenAIAdapter,
    AnthropicAdapter,
    GoogleAdapter,
    ProviderRegistry,
)
from vinexport.core.ai.orchestrator import AIOrchestrator

__all__ = [
    # Types
    "ProviderName",
    "PROVIDER_PRIORITY",
    "DocumentInput",
    "LLMOptions",
    "LLMResponse",
    "SingleSourcePolicy",
    "SelfConsistencyPolicy",
    "CrossCritiquePolicy",
    "OrchestrationPolicy",
    "TaskInput",
    "ExecutionContext",
    "LLMRun",
    "TaskMetadata",
    "TaskOutput",
    "GuardrailsConfig",
    "AdmissionDecision",
    "BreakerState",
    "CircuitBreakerState",
    "calculate_cost",
    # Errors
    "OrchestrationError",
    "AdmissionRejectedError",
    "CircuitOpenError",
    "ProviderTimeoutError",
    "ProviderCallError",
    "InvalidResponseError",
    "RetriesExhaustedError",
    "AllProvidersFailedError",
    "SchemaValidationError",
    "InvalidTaskError",
    # Components
    "Guardrails",
    "AnalysisKind",
    "get_analysis",
    "validate_analysis",
    "ProviderAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "ProviderRegistry",
    "AIOrchestrator",
]
