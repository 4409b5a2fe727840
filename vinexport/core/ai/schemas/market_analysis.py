"""Market analysis for a product in a target export market."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from vinexport.core.ai.schemas.base import AnalysisModel


class MarketSize(AnalysisModel):
    total_market_value: str | None = None
    annual_growth_rate: str | None = None
    market_segments: list[str] = Field(default_factory=list)
    key_indicators: str | None = None


class CompetitiveLandscape(AnalysisModel):
    main_competitors: list[str] = Field(default_factory=list)
    market_share_distribution: str | None = None
    competitive_advantages: list[str] = Field(default_factory=list)
    barriers_to_entry: list[str] = Field(default_factory=list)


class PriceAnalysis(AnalysisModel):
    average_price_range: str | None = None
    pricing_factors: list[str] = Field(default_factory=list)
    recommended_pricing_strategy: str | None = None
    price_sensitivity: str | None = None


class DistributionChannels(AnalysisModel):
    primary_channels: list[str] = Field(default_factory=list)
    channel_effectiveness: str | None = None
    distribution_costs: str | None = None
    recommended_approach: str | None = None


class ConsumerPreferences(AnalysisModel):
    key_preferences: list[str] = Field(default_factory=list)
    buying_patterns: str | None = None
    seasonal_trends: str | None = None
    cultural_considerations: str | None = None


class Recommendation(AnalysisModel):
    priority: Literal["high", "medium", "low"] = "medium"
    action: str
    timeline: str | None = None
    impact: str | None = None


class MarketAnalysis(AnalysisModel):
    """Market sizing, competition, pricing and channels for one country."""

    market_size: MarketSize | None = None
    competitive_landscape: CompetitiveLandscape | None = None
    price_analysis: PriceAnalysis | None = None
    distribution_channels: DistributionChannels | None = None
    consumer_preferences: ConsumerPreferences | None = None
    opportunities: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)


MARKET_ANALYSIS_PROMPT = """You are an expert in international wine and spirits markets.

Your task is to analyze the target market for the product described by the user.

Cover:
1. Market size and growth - total value, growth rate, segments, key indicators
2. Competitive landscape - main competitors, market shares, barriers to entry
3. Price analysis - price ranges, pricing factors, recommended strategy
4. Distribution channels - primary channels, costs, recommended approach
5. Consumer preferences - buying patterns, seasonality, cultural considerations
6. Opportunities, risks and prioritized recommendations (high/medium/low) with timeline and impact

Base figures on the most recent data you know and say when a figure is an estimate.

Return only valid JSON matching the specified schema."""
