"""Evidence Verifier for extracted product data.

Checks that every extracted field is backed by a citation whose evidence
snippet actually appears in the source document text. Fields that cannot be
grounded are nulled out; a report records what was kept and what was dropped.

Verification never raises: missing or invalid evidence degrades to null
fields, and output is a pure function of (fields, source_text, label).
"""

from __future__ import annotations

import copy
import logging
import math
import re
import unicodedata
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Keys carried alongside extracted fields that are not fields themselves
RESERVED_KEYS = frozenset({"citations", "confidence"})

# Kept regardless of evidence when nothing at all could be verified
ESSENTIAL_FIELDS: tuple[str, ...] = (
    "name",
    "productName",
    "vintage",
    "abv_percent",
    "alcohol_percentage",
    "appellation",
)


class ValidationReport(BaseModel):
    """Outcome of verifying one extraction."""

    kept_fields: int = 0
    dropped_fields: int = 0
    no_citation_fields: list[str] = Field(default_factory=list)
    invalid_evidence_fields: list[str] = Field(default_factory=list)
    fallback_applied: bool = False
    citations_present: bool = True
    label: str = ""


class EvidenceVerificationResult(BaseModel):
    """Verified fields plus the report describing what changed."""

    extracted_data: dict[str, Any]
    validation_report: ValidationReport


# =============================================================================
# NORMALIZATION
# =============================================================================


_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_for_evidence(text: str) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace.

    >>> normalize_for_evidence("Château  Margaux, 2020!")
    'chateau margaux 2020'
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", stripped)).strip()


# =============================================================================
# MATCH STRATEGIES
#
# Each strategy takes normalized evidence and normalized source text and
# returns True when the evidence is found. They are tried in order.
# =============================================================================


def _significant_words(evidence: str) -> list[str]:
    return [w for w in evidence.split(" ") if len(w) > 2]


def exact_match(evidence: str, source: str) -> bool:
    """Evidence appears verbatim in the source."""
    return bool(evidence) and evidence in source


def partial_window_match(evidence: str, source: str) -> bool:
    """Some contiguous 70% slice of the evidence appears in the source.

    Only for evidence longer than 10 characters, and only windows longer
    than 10 characters count.
    """
    if len(evidence) <= 10:
        return False

    window = math.floor(len(evidence) * 0.7)
    if window <= 10:
        return False

    return any(
        evidence[i:i + window] in source
        for i in range(len(evidence) - window + 1)
    )


def token_overlap_match(evidence: str, source: str) -> bool:
    """At least 60% (minimum 2) of 3+ significant words appear in the source."""
    words = _significant_words(evidence)
    if len(words) < 3:
        return False

    matches = sum(1 for word in words if word in source)
    return matches >= max(2, math.ceil(len(words) * 0.6))


def token_pair_match(evidence: str, source: str) -> bool:
    """Both words of two-word evidence appear in the source."""
    words = _significant_words(evidence)
    if len(words) != 2:
        return False
    return all(word in source for word in words)


def single_word_match(evidence: str, source: str) -> bool:
    """A single significant word longer than 4 characters appears in the source."""
    words = _significant_words(evidence)
    if len(words) != 1 or len(words[0]) <= 4:
        return False
    return words[0] in source


MatchStrategy = Callable[[str, str], bool]

MATCH_STRATEGIES: tuple[tuple[str, MatchStrategy], ...] = (
    ("exact", exact_match),
    ("partial_window", partial_window_match),
    ("token_overlap", token_overlap_match),
    ("token_pair", token_pair_match),
    ("single_word", single_word_match),
)


def find_evidence(evidence: str, normalized_source: str) -> str | None:
    """Return the name of the first strategy that finds ``evidence``, else None.

    Args:
        evidence: Raw evidence snippet as cited by the provider
        normalized_source: Source text already passed through normalize_for_evidence
    """
    normalized = normalize_for_evidence(evidence)
    if not normalized:
        return None

    for name, strategy in MATCH_STRATEGIES:
        if strategy(normalized, normalized_source):
            return name
    return None


def evidence_found(evidence: str, source_text: str) -> bool:
    """Check a single evidence snippet against raw source text."""
    return find_evidence(evidence, normalize_for_evidence(source_text)) is not None


# =============================================================================
# VERIFICATION
# =============================================================================


def _has_data(value: Any) -> bool:
    return value is not None and value != ""


def _citation_evidence(citation: Any) -> str | None:
    if isinstance(citation, str):
        return citation
    if isinstance(citation, dict):
        evidence = citation.get("evidence")
        if isinstance(evidence, str):
            return evidence
    return None


def verify_evidence(
    extracted_fields: dict[str, Any],
    source_text: str,
    label: str = "",
) -> EvidenceVerificationResult:
    """Null out extracted fields whose citations are not found in the source.

    ``extracted_fields`` carries its citations under the ``citations`` key as
    ``{field: [{"evidence": str, "page": int}, ...]}``; plain strings are
    accepted as evidence too.

    Args:
        extracted_fields: Provider output, including its ``citations`` map
        source_text: Text of the source document
        label: Name of the document, used in logs and the report

    Returns:
        EvidenceVerificationResult with the verified copy and its report
    """
    data = copy.deepcopy(extracted_fields) if isinstance(extracted_fields, dict) else {}
    report = ValidationReport(label=label)
    field_names = [key for key in data if key not in RESERVED_KEYS]

    citations = data.get("citations")
    if not isinstance(citations, dict):
        report.citations_present = False
        report.kept_fields = sum(1 for name in field_names if _has_data(data[name]))
        logger.info(f"No citations for {label or 'extraction'}; skipping evidence verification")
        return EvidenceVerificationResult(extracted_data=data, validation_report=report)

    normalized_source = normalize_for_evidence(source_text or "")
    results: dict[str, bool] = {}

    for name in field_names:
        if not _has_data(data[name]):
            continue

        field_citations = citations.get(name)
        if not isinstance(field_citations, list) or not field_citations:
            results[name] = False
            report.no_citation_fields.append(name)
            continue

        verified = False
        for citation in field_citations:
            evidence = _citation_evidence(citation)
            if evidence is not None and find_evidence(evidence, normalized_source):
                verified = True
                break

        results[name] = verified
        if not verified:
            report.invalid_evidence_fields.append(name)

    verified_count = sum(1 for ok in results.values() if ok)

    if results and verified_count == 0:
        report.fallback_applied = True
        for name in results:
            if name in ESSENTIAL_FIELDS:
                report.kept_fields += 1
            else:
                data[name] = None
                report.dropped_fields += 1
        logger.warning(
            f"No field of {label or 'extraction'} could be verified; "
            f"kept {report.kept_fields} essential field(s)"
        )
    else:
        for name, ok in results.items():
            if ok:
                report.kept_fields += 1
            else:
                data[name] = None
                report.dropped_fields += 1
        if report.dropped_fields:
            logger.warning(
                f"Dropped {report.dropped_fields} unverified field(s) from {label or 'extraction'}"
            )

    return EvidenceVerificationResult(extracted_data=data, validation_report=report)
