"""Analysis kinds: result models, prompts and default policies.

Each kind pairs a lenient pydantic model (validated at the boundary) with the
system prompt sent to providers and the orchestration policy used when the
caller does not pick one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from vinexport.core.ai.errors import SchemaValidationError
from vinexport.core.ai.schemas.base import AnalysisModel
from vinexport.core.ai.schemas.geographic_analysis import (
    GEOGRAPHIC_ANALYSIS_PROMPT,
    GeographicAnalysis,
)
from vinexport.core.ai.schemas.lead_generation import LEAD_GENERATION_PROMPT, LeadGeneration
from vinexport.core.ai.schemas.market_analysis import MARKET_ANALYSIS_PROMPT, MarketAnalysis
from vinexport.core.ai.schemas.marketing_intelligence import (
    MARKETING_INTELLIGENCE_PROMPT,
    MarketingIntelligence,
)
from vinexport.core.ai.schemas.product_extraction import (
    PRODUCT_EXTRACTION_PROMPT,
    ProductExtraction,
)
from vinexport.core.ai.schemas.regulatory_analysis import (
    REGULATORY_ANALYSIS_PROMPT,
    RegulatoryAnalysis,
)
from vinexport.core.ai.types import (
    CrossCritiquePolicy,
    OrchestrationPolicy,
    SelfConsistencyPolicy,
    SingleSourcePolicy,
)


class AnalysisKind(str, Enum):
    """Known analysis kinds."""

    PRODUCT_EXTRACTION = "product_extraction"
    MARKET_ANALYSIS = "market_analysis"
    REGULATORY_ANALYSIS = "regulatory_analysis"
    LEAD_GENERATION = "lead_generation"
    MARKETING_INTELLIGENCE = "marketing_intelligence"
    GEOGRAPHIC_ANALYSIS = "geographic_analysis"


@dataclass(frozen=True)
class AnalysisDefinition:
    """Everything the orchestrator needs to run one analysis kind."""

    kind: AnalysisKind
    model: type[AnalysisModel]
    prompt: str
    policy: OrchestrationPolicy
    description: str = ""

    def json_schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()


ANALYSES: dict[AnalysisKind, AnalysisDefinition] = {
    AnalysisKind.PRODUCT_EXTRACTION: AnalysisDefinition(
        kind=AnalysisKind.PRODUCT_EXTRACTION,
        model=ProductExtraction,
        prompt=PRODUCT_EXTRACTION_PROMPT,
        policy=SingleSourcePolicy(provider="openai"),
        description="Structured product data from a technical sheet",
    ),
    AnalysisKind.MARKET_ANALYSIS: AnalysisDefinition(
        kind=AnalysisKind.MARKET_ANALYSIS,
        model=MarketAnalysis,
        prompt=MARKET_ANALYSIS_PROMPT,
        policy=CrossCritiquePolicy(providers=["openai", "anthropic", "google"]),
        description="Market size, competition, pricing and channels",
    ),
    AnalysisKind.REGULATORY_ANALYSIS: AnalysisDefinition(
        kind=AnalysisKind.REGULATORY_ANALYSIS,
        model=RegulatoryAnalysis,
        prompt=REGULATORY_ANALYSIS_PROMPT,
        policy=CrossCritiquePolicy(providers=["openai", "anthropic", "google"]),
        description="Import requirements, duties and labeling rules",
    ),
    AnalysisKind.LEAD_GENERATION: AnalysisDefinition(
        kind=AnalysisKind.LEAD_GENERATION,
        model=LeadGeneration,
        prompt=LEAD_GENERATION_PROMPT,
        policy=SelfConsistencyPolicy(provider="openai", runs=3),
        description="Qualified distributor and importer leads",
    ),
    AnalysisKind.MARKETING_INTELLIGENCE: AnalysisDefinition(
        kind=AnalysisKind.MARKETING_INTELLIGENCE,
        model=MarketingIntelligence,
        prompt=MARKETING_INTELLIGENCE_PROMPT,
        policy=CrossCritiquePolicy(providers=["openai", "anthropic", "google"]),
        description="Channels, positioning and pricing for market entry",
    ),
    AnalysisKind.GEOGRAPHIC_ANALYSIS: AnalysisDefinition(
        kind=AnalysisKind.GEOGRAPHIC_ANALYSIS,
        model=GeographicAnalysis,
        prompt=GEOGRAPHIC_ANALYSIS_PROMPT,
        policy=CrossCritiquePolicy(providers=["openai", "anthropic", "google"]),
        description="Country-level export potential and market score",
    ),
}


def get_analysis(kind: str | AnalysisKind) -> AnalysisDefinition:
    """Look up an analysis definition.

    Raises:
        ValueError: If the kind is unknown
    """
    return ANALYSES[AnalysisKind(kind)]


def validate_analysis(
    kind: str | AnalysisKind,
    data: Any,
    exclude_unset: bool = False,
) -> dict[str, Any]:
    """Validate a provider result against its kind's model.

    Args:
        kind: Analysis kind
        data: Provider result
        exclude_unset: Leave out fields the result did not set instead of
            filling in model defaults

    Returns:
        The normalized result as a plain dict

    Raises:
        SchemaValidationError: If the result does not fit the model
    """
    definition = get_analysis(kind)
    try:
        validated = definition.model.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(definition.kind.value, e.errors(include_url=False)) from e
    return validated.model_dump(exclude_unset=exclude_unset)


# Bookkeeping keys that are not result fields
NON_FIELD_KEYS = frozenset({"citations", "confidence"})


def schema_field_names(schema: Any) -> list[str]:
    """Top-level field names described by a schema.

    Accepts a JSON schema (``properties``) or a plain ``{field: type}`` map.
    """
    if not isinstance(schema, dict):
        return []

    properties = schema.get("properties")
    if isinstance(properties, dict):
        names = list(properties)
    elif schema.get("type") == "object":
        names = []
    else:
        names = list(schema)

    return [name for name in names if name not in NON_FIELD_KEYS]


__all__ = [
    "AnalysisKind",
    "AnalysisDefinition",
    "AnalysisModel",
    "ANALYSES",
    "get_analysis",
    "validate_analysis",
    "schema_field_names",
    "ProductExtraction",
    "MarketAnalysis",
    "RegulatoryAnalysis",
    "LeadGeneration",
    "MarketingIntelligence",
    "GeographicAnalysis",
]
