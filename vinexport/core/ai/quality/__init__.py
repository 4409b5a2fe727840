"""Quality scoring for orchestrated results."""

from vinexport.core.ai.quality.scorers import (
    ConfidenceScorer,
    CoverageScorer,
    QualityScorer,
    ScoreResult,
    compute_quality_score,
)

__all__ = [
    "QualityScorer",
    "ScoreResult",
    "CoverageScorer",
    "ConfidenceScorer",
    "compute_quality_score",
]
