"""Geographic market analysis for a project and one target country."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from vinexport.core.ai.schemas.base import AnalysisModel, parse_french_number
from vinexport.core.ai.schemas.market_analysis import Recommendation


class DemographicData(AnalysisModel):
    population: str | None = None
    gdp_per_capita: str | None = None
    urban_population_share: str | None = None
    consumption_patterns: str | None = None


class MarketPotential(AnalysisModel):
    wine_market_size_usd: str | None = None
    consumption_per_capita: str | None = None
    import_volume: str | None = None
    growth_rate: str | None = None
    premium_segment: str | None = None


class GeographicCompetition(AnalysisModel):
    main_importing_countries: list[str] = Field(default_factory=list)
    key_players: list[str] = Field(default_factory=list)
    price_positioning: str | None = None
    distribution_channels: list[str] = Field(default_factory=list)


class RegulatoryEnvironment(AnalysisModel):
    import_duties: str | None = None
    labeling_requirements: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)
    complexity_score: float | None = Field(default=None, ge=1, le=10)

    parse_numbers = field_validator("complexity_score", mode="before")(parse_french_number)


class GeographicAnalysis(AnalysisModel):
    """Country-level export potential with an overall 0-100 market score."""

    country_code: str | None = None
    market_score: float | None = Field(default=None, ge=0, le=100)
    score_breakdown: dict[str, Any] = Field(default_factory=dict)
    demographic_data: DemographicData | None = None
    market_potential: MarketPotential | None = None
    competitive_landscape: GeographicCompetition | None = None
    regulatory_environment: RegulatoryEnvironment | None = None
    entry_strategy: str | None = None
    risks: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)

    parse_numbers = field_validator("market_score", mode="before")(parse_french_number)


GEOGRAPHIC_ANALYSIS_PROMPT = """You are a wine export market analyst specializing in geographic market analysis.

Your task is to assess the export potential of the user's project in one target country.

Cover:
1. Demographics - population, GDP per capita, urbanization, wine consumption patterns
2. Market potential - market size (USD), consumption per capita, imports, growth, premium segment
3. Competitive landscape - main importing countries, key players, price positioning, channels
4. Regulatory environment - duties, labeling, certifications, complexity score (1-10)
5. Entry strategy - direct, partnership or distributor, with risks and prioritized recommendations
6. Market score - overall attractiveness from 0 to 100 with a per-category breakdown

Give specific, quantified and actionable insights. Say when a figure is an estimate.

Return only valid JSON matching the specified schema."""
