"""Import regulations for wine and spirits in a target country."""

from __future__ import annotations

from pydantic import Field

from vinexport.core.ai.schemas.base import AnalysisModel


class ImportRequirements(AnalysisModel):
    required_documents: list[str] = Field(default_factory=list)
    import_procedures: str | None = None
    processing_time: str | None = None
    regulatory_bodies: list[str] = Field(default_factory=list)


class CertificationsNeeded(AnalysisModel):
    mandatory_certifications: list[str] = Field(default_factory=list)
    optional_certifications: list[str] = Field(default_factory=list)
    certification_process: str | None = None
    validity_period: str | None = None


class TaxesDuties(AnalysisModel):
    import_duty_rate: str | None = None
    vat_rate: str | None = None
    additional_fees: list[str] = Field(default_factory=list)
    total_cost_estimate: str | None = None


class LabelingRequirements(AnalysisModel):
    mandatory_information: list[str] = Field(default_factory=list)
    language_requirements: str | None = None
    warning_labels: list[str] = Field(default_factory=list)
    special_requirements: str | None = None


class Restrictions(AnalysisModel):
    prohibited_substances: list[str] = Field(default_factory=list)
    quantity_limits: str | None = None
    seasonal_restrictions: str | None = None
    regional_restrictions: str | None = None


class ComplianceChecklist(AnalysisModel):
    pre_import: list[str] = Field(default_factory=list)
    during_import: list[str] = Field(default_factory=list)
    post_import: list[str] = Field(default_factory=list)
    ongoing_compliance: list[str] = Field(default_factory=list)


class RegulatoryAnalysis(AnalysisModel):
    """Documents, certifications, duties and labeling rules for importing."""

    import_requirements: ImportRequirements | None = None
    certifications_needed: CertificationsNeeded | None = None
    taxes_duties: TaxesDuties | None = None
    labeling_requirements: LabelingRequirements | None = None
    restrictions: Restrictions | None = None
    compliance_checklist: ComplianceChecklist | None = None


REGULATORY_ANALYSIS_PROMPT = """You are an expert in international trade regulations and import/export compliance.

Your task is to provide a comprehensive regulatory analysis for importing wine and spirits \
products into the specified country.

Analyze the following aspects:
1. Import requirements and procedures - detailed step-by-step process
2. Required certifications and documentation - mandatory and optional
3. Taxes, duties, and fees - complete cost breakdown
4. Labeling and packaging requirements - compliance specifications
5. Restrictions and prohibitions - what to avoid
6. Compliance checklist - actionable steps for each phase

Focus on accuracy and provide practical, actionable guidance. Always emphasize consulting \
local authorities for current regulations.

Return only valid JSON matching the specified schema."""
