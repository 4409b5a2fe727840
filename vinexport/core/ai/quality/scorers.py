"""Quality scoring for structured analysis results.

Provides two scoring dimensions:
- Coverage (fraction of schema fields populated)
- Confidence (mean of provider confidence or cross-provider agreement)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from vinexport.core.ai.consensus import is_filled, mean_confidence
from vinexport.core.ai.schemas import schema_field_names


@dataclass
class ScoreResult:
    """Result from a quality scorer."""

    dimension: str
    score: float | None  # 0.0 to 1.0, None when the signal is unavailable
    issues: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)


class QualityScorer(ABC):
    """Base class for quality scorers."""

    dimension: str = "base"
    weight: float = 1.0

    @abstractmethod
    def score(
        self,
        result: Any,
        context: dict[str, Any] | None = None,
    ) -> ScoreResult:
        """Score a result on this dimension.

        Args:
            result: Parsed provider result
            context: Additional context (schema, confidence map, ...)

        Returns:
            ScoreResult with score and issues
        """


class CoverageScorer(QualityScorer):
    """Fraction of top-level schema fields the result populates."""

    dimension = "coverage"
    weight = 0.7

    def score(
        self,
        result: Any,
        context: dict[str, Any] | None = None,
    ) -> ScoreResult:
        context = context or {}
        fields = schema_field_names(context.get("schema"))
        if not fields and isinstance(result, dict):
            fields = [name for name in result if name not in ("citations", "confidence")]

        if not fields or not isinstance(result, dict):
            return ScoreResult(dimension=self.dimension, score=None)

        missing = [name for name in fields if not is_filled(result.get(name))]
        return ScoreResult(
            dimension=self.dimension,
            score=(len(fields) - len(missing)) / len(fields),
            issues=[f"Missing field: {name}" for name in missing],
            details={"fields": len(fields), "populated": len(fields) - len(missing)},
        )


class ConfidenceScorer(QualityScorer):
    """Mean of a per-field confidence map.

    Uses ``context["confidence"]`` (e.g. cross-provider agreement) when given,
    otherwise the ``confidence`` map the provider put in its result.
    """

    dimension = "confidence"
    weight = 0.3

    def score(
        self,
        result: Any,
        context: dict[str, Any] | None = None,
    ) -> ScoreResult:
        context = context or {}
        confidence = context.get("confidence")
        if confidence is None and isinstance(result, dict):
            confidence = result.get("confidence")

        value = mean_confidence(confidence)
        return ScoreResult(
            dimension=self.dimension,
            score=value,
            details={"fields": len(confidence) if isinstance(confidence, dict) else 0},
        )


def compute_quality_score(
    result: Any,
    schema: Any = None,
    confidence: dict[str, float] | None = None,
) -> float | None:
    """Overall quality in [0, 1], rounded to 3 decimals.

    ``0.7 * coverage + 0.3 * mean confidence`` when a confidence signal
    exists, otherwise coverage alone. None when there is nothing to measure.
    """
    context = {"schema": schema, "confidence": confidence}
    coverage = CoverageScorer().score(result, context)
    if coverage.score is None:
        return None

    conf = ConfidenceScorer().score(result, context)
    if conf.score is None:
        return round(coverage.score, 3)

    total = CoverageScorer.weight * coverage.score + ConfidenceScorer.weight * conf.score
    return round(min(1.0, max(0.0, total)), 3)
