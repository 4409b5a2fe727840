"""Tests for analysis kinds, result models and schema helpers."""

import pytest

from vinexport.core.ai.errors import SchemaValidationError
from vinexport.core.ai.schemas import (
    ANALYSES,
    AnalysisKind,
    get_analysis,
    schema_field_names,
    validate_analysis,
)
from vinexport.core.ai.schemas.base import parse_french_number
from vinexport.core.ai.types import CrossCritiquePolicy, SelfConsistencyPolicy, SingleSourcePolicy


class TestAnalysisRegistry:
    """Every kind has a model, prompt and default policy."""

    def test_all_kinds_registered(self):
        assert set(ANALYSES) == set(AnalysisKind)
        for definition in ANALYSES.values():
            assert definition.prompt
            assert "properties" in definition.json_schema()

    def test_default_policies(self):
        assert get_analysis("product_extraction").policy == SingleSourcePolicy(provider="openai")
        assert get_analysis("lead_generation").policy == SelfConsistencyPolicy(provider="openai", runs=3)
        assert isinstance(get_analysis(AnalysisKind.MARKET_ANALYSIS).policy, CrossCritiquePolicy)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            get_analysis("horoscope")


class TestValidateAnalysis:
    """Boundary validation of provider results."""

    def test_product_extraction_normalizes(self):
        result = validate_analysis(
            "product_extraction",
            {
                "name": "Domaine de la Romanée-Conti",
                "vintage": "Millésime 2019",
                "alcohol_percentage": "13,5% vol",
                "volume_ml": 750,
                "technical_specs": {"ph": "3,6", "grape_varieties": "Pinot Noir"},
                "marketing_blurb": "dropped",
            },
        )
        assert result["vintage"] == 2019
        assert result["alcohol_percentage"] == 13.5
        assert result["technical_specs"]["ph"] == 3.6
        assert result["awards"] == []
        assert "marketing_blurb" not in result

    def test_citations_accept_strings_and_objects(self):
        result = validate_analysis(
            "product_extraction",
            {"name": "Opus One", "citations": {"name": ["Opus One", {"evidence": "OPUS ONE", "page": 2}]}},
        )
        assert result["citations"]["name"][0] == "Opus One"
        assert result["citations"]["name"][1] == {"evidence": "OPUS ONE", "page": 2}

    def test_invalid_category(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_analysis("product_extraction", {"category": "cider"})
        assert exc_info.value.analysis == "product_extraction"
        assert exc_info.value.errors[0]["loc"] == ("category",)

    def test_lead_requires_company_name(self):
        with pytest.raises(SchemaValidationError):
            validate_analysis("lead_generation", {"leads": [{"email": "buyer@example.jp"}]})

    def test_market_analysis(self):
        result = validate_analysis(
            "market_analysis",
            {
                "opportunities": ["Premiumisation in Tokyo"],
                "recommendations": [{"action": "Partner with an importer", "priority": "high"}],
            },
        )
        assert result["recommendations"][0]["priority"] == "high"
        assert result["market_size"] is None

    def test_geographic_analysis(self):
        result = validate_analysis(
            "geographic_analysis",
            {"country_code": "JP", "market_score": "72/100", "risks": ["Yen volatility"]},
        )
        assert result["market_score"] == 72.0
        assert result["demographic_data"] is None
        assert get_analysis("geographic_analysis").policy == CrossCritiquePolicy()

    def test_geographic_score_out_of_range(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_analysis("geographic_analysis", {"market_score": 140})
        assert exc_info.value.errors[0]["loc"] == ("market_score",)

    def test_exclude_unset_leaves_out_defaults(self):
        result = validate_analysis("product_extraction", {"name": "Opus One"}, exclude_unset=True)
        assert result == {"name": "Opus One"}


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("14,5 % vol", 14.5),
            ("12.5", 12.5),
            ("750 ml", 750.0),
            ("n/a", None),
            (12, 12),
            (None, None),
        ],
    )
    def test_parse_french_number(self, value, expected):
        assert parse_french_number(value) == expected

    def test_schema_field_names(self):
        schema = {
            "type": "object",
            "properties": {"name": {}, "vintage": {}, "citations": {}, "confidence": {}},
        }
        assert schema_field_names(schema) == ["name", "vintage"]
        assert schema_field_names({"name": "string", "region": "string"}) == ["name", "region"]
        assert schema_field_names({"type": "object"}) == []
        assert schema_field_names(None) == []
