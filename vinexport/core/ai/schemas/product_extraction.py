"""Product extraction from wine and spirits technical sheets."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from vinexport.core.ai.schemas.base import AnalysisModel, parse_french_number


class Citation(BaseModel):
    """Source excerpt backing an extracted value."""

    evidence: str
    page: int | None = None


class TechnicalSpecs(AnalysisModel):
    ph: float | None = Field(default=None, description="pH level")
    total_acidity: str | None = Field(default=None, description="Total acidity")
    residual_sugar: str | None = Field(default=None, description="Residual sugar content")
    so2_total: float | None = Field(default=None, description="Total SO2 content in mg/L")
    grape_varieties: str | None = Field(default=None, description="Grape varieties used")
    aging_process: str | None = Field(default=None, description="Aging process description")
    serving_temperature: str | None = Field(default=None, description="Recommended serving temperature")
    any_other_specs: str | None = Field(default=None, description="Any other technical specifications")

    parse_numbers = field_validator("ph", "so2_total", mode="before")(parse_french_number)


class ProducerContact(AnalysisModel):
    name: str | None = Field(default=None, description="Producer/contact name")
    email: str | None = Field(default=None, description="Email contact")
    phone: str | None = Field(default=None, description="Phone contact")
    website: str | None = Field(default=None, description="Website URL")


class ProductExtraction(AnalysisModel):
    """Structured product data extracted from a document."""

    name: str | None = Field(default=None, description="Product name")
    category: Literal["wine", "spirits", "champagne", "beer"] | None = Field(
        default=None, description="Product category"
    )
    vintage: int | None = Field(default=None, description="Vintage year if applicable")
    alcohol_percentage: float | None = Field(default=None, description="Alcohol percentage by volume")
    volume_ml: float | None = Field(default=None, description="Volume in milliliters")
    description: str | None = Field(default=None, description="Product description")
    tasting_notes: str | None = Field(default=None, description="Tasting notes and characteristics")
    appellation: str | None = Field(default=None, description="Appellation or region of origin")
    awards: list[str] = Field(default_factory=list, description="Awards and recognitions")
    certifications: list[str] = Field(default_factory=list, description="Certifications (organic, etc.)")
    technical_specs: TechnicalSpecs | None = Field(default=None, description="Technical specifications")

    terroir: str | None = Field(default=None, description="Terroir information (soil, exposition, altitude)")
    vine_age: float | None = Field(default=None, description="Average age of vines in years")
    yield_hl_ha: float | None = Field(default=None, description="Yield in hectoliters per hectare")
    vinification: str | None = Field(default=None, description="Vinification process details")
    aging_details: str | None = Field(default=None, description="Detailed aging process")
    bottling_info: str | None = Field(default=None, description="Bottling date and process")
    ean_code: str | None = Field(default=None, description="EAN/barcode")
    packaging_info: str | None = Field(default=None, description="Packaging and case details")
    availability: str | None = Field(default=None, description="Product availability")
    producer_contact: ProducerContact | None = Field(default=None, description="Producer contact information")

    citations: dict[str, list[Citation | str]] | None = Field(
        default=None,
        description="Evidence excerpts per field, quoted from the document",
    )
    confidence: dict[str, float] | None = Field(
        default=None,
        description="Per-field confidence between 0 and 1",
    )

    parse_numbers = field_validator(
        "alcohol_percentage", "volume_ml", "vine_age", "yield_hl_ha", mode="before"
    )(parse_french_number)

    @field_validator("vintage", mode="before")
    @classmethod
    def parse_vintage(cls, value: Any) -> Any:
        number = parse_french_number(value)
        return int(number) if isinstance(number, float) else number


PRODUCT_EXTRACTION_PROMPT = """You are a French wine and spirits data extraction specialist. \
You read technical sheets (fiches techniques) from châteaux, domaines and négociants.

Extract every visible piece of product information from the document:

1. Product identification: château/domaine name, cuvée, product line. Never leave the name empty.
2. Category: "wine" (AOC/AOP, IGP, Vin de France), "champagne" (Champagne AOC only),
   "spirits" (Cognac, Armagnac, whisky, liqueurs...), "beer".
3. Vintage: "Millésime 2020", "Récolte 2019", years in titles, descriptions or file names.
4. Alcohol: convert French notation to decimals ("13,5% vol" -> 13.5).
5. Volume in ml: bouteille -> 750, magnum / 1,5L -> 1500, demi-bouteille / 37,5cl -> 375.
6. Appellation: full official name with AOC/AOP/IGP.
7. Technical specifications: pH, total acidity, residual sugar, SO2, grape varieties with
   percentages, élevage, serving temperature.
8. Terroir, vine age, yield (hl/ha), vinification, aging details, bottling.
9. Commercial data: EAN code, packaging, availability, producer contact.
10. Awards (medals, guides, scores) and certifications (AB, Demeter, HVE, Terra Vitis...).

For every field you fill, add an entry to "citations" mapping the field name to a list of
{"evidence": "<exact excerpt from the document>", "page": <page number>}. Quote the document
verbatim. Add a "confidence" map with a 0-1 score per field.

Return ONLY valid JSON."""
