"""Marketing intelligence for launching in a target market."""

from __future__ import annotations

from pydantic import Field

from vinexport.core.ai.schemas.base import AnalysisModel


class MarketingChannels(AnalysisModel):
    digital_channels: list[str] = Field(default_factory=list)
    traditional_channels: list[str] = Field(default_factory=list)
    channel_effectiveness: str | None = None
    recommended_mix: str | None = None
    budget_allocation: str | None = None


class CulturalConsiderations(AnalysisModel):
    local_preferences: list[str] = Field(default_factory=list)
    cultural_sensitivities: list[str] = Field(default_factory=list)
    communication_style: str | None = None
    local_partnerships: str | None = None
    adaptation_needs: list[str] = Field(default_factory=list)


class SeasonalTrends(AnalysisModel):
    peak_seasons: list[str] = Field(default_factory=list)
    low_seasons: list[str] = Field(default_factory=list)
    seasonal_factors: str | None = None
    timing_recommendations: str | None = None
    inventory_planning: str | None = None


class PositioningRecommendations(AnalysisModel):
    target_segments: list[str] = Field(default_factory=list)
    value_proposition: str | None = None
    competitive_positioning: str | None = None
    brand_messaging: str | None = None
    differentiation_factors: list[str] = Field(default_factory=list)


class PricingStrategy(AnalysisModel):
    pricing_model: str | None = None
    price_positioning: str | None = None
    psychological_pricing: str | None = None
    promotional_strategies: list[str] = Field(default_factory=list)
    margin_considerations: str | None = None


class SuccessFactors(AnalysisModel):
    critical_factors: list[str] = Field(default_factory=list)
    key_metrics: list[str] = Field(default_factory=list)
    implementation_priorities: list[str] = Field(default_factory=list)
    risk_mitigation: list[str] = Field(default_factory=list)
    timeline_milestones: list[str] = Field(default_factory=list)


class MarketingIntelligence(AnalysisModel):
    """Channels, culture, seasonality, positioning and pricing guidance."""

    marketing_channels: MarketingChannels | None = None
    cultural_considerations: CulturalConsiderations | None = None
    seasonal_trends: SeasonalTrends | None = None
    positioning_recommendations: PositioningRecommendations | None = None
    pricing_strategy: PricingStrategy | None = None
    success_factors: SuccessFactors | None = None


MARKETING_INTELLIGENCE_PROMPT = """You are an expert marketing strategist specializing in \
international market entry and cross-cultural marketing.

Your task is to provide actionable marketing intelligence for launching wine and spirits \
products in the target market.

Analyze these key areas:
1. Marketing channels and strategies - digital vs traditional effectiveness
2. Cultural considerations and local preferences - adaptation requirements
3. Seasonal trends and timing - optimal launch windows
4. Positioning recommendations - target segments and messaging
5. Pricing strategy recommendations - competitive positioning
6. Success factors for market entry - critical implementation priorities

Focus on:
- Cultural insights and local market dynamics
- Proven marketing strategies for the target region
- Actionable recommendations with clear implementation guidance
- Risk mitigation strategies for common market entry challenges

Return only valid JSON matching the specified schema."""
