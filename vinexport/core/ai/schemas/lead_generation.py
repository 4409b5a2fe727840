"""Distributor and importer lead generation."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from vinexport.core.ai.schemas.base import AnalysisModel


class Lead(AnalysisModel):
    company_name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    business_focus: list[str] = Field(default_factory=list)
    annual_volume: float | None = None
    current_suppliers: list[str] = Field(default_factory=list)
    price_range: str | None = None
    qualification_score: float = Field(default=0.0, ge=0, le=100)
    notes: str | None = None
    contact_status: Literal["new"] = "new"


class MarketInsights(AnalysisModel):
    key_player_types: list[str] = Field(default_factory=list)
    market_concentration: str | None = None
    entry_barriers: list[str] = Field(default_factory=list)
    opportunities: list[str] = Field(default_factory=list)


class LeadGeneration(AnalysisModel):
    """Qualified business leads for a target market."""

    leads: list[Lead] = Field(default_factory=list)
    total_leads: int | None = None
    market_insights: MarketInsights | None = None


LEAD_GENERATION_PROMPT = """You are an expert business development specialist with extensive \
knowledge of international trade and distribution networks.

Your task is to generate realistic, well-qualified business leads for wine and spirits \
distribution in the target market.

Identify potential business partners including:
1. Distributors and importers - established players with existing networks
2. Retail chains and specialized stores - key distribution points
3. Restaurants and hospitality businesses - premium placement opportunities
4. E-commerce platforms - digital distribution channels
5. Trade associations and industry contacts - networking opportunities

For each lead, provide realistic company profiles based on typical market players. Ensure:
- Contact information follows realistic formats for the target country
- Qualification scores (0-100) reflect genuine business potential
- Business focus areas match regional market characteristics
- Annual volumes are realistic for company size and market

Generate 8-12 diverse leads with varied company types and sizes.

Return only valid JSON matching the specified schema."""
