"""Field-wise reconciliation of several structured results.

Used by the self-consistency policy to merge N runs into one result, and by
cross-critique to measure how far providers agree on each field.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

NON_FIELD_KEYS = frozenset({"citations", "confidence"})

# Numbers on these keys compare at 3 decimals, everything else at 2
_PRECISE_KEY = re.compile(r"abv|percent|price|ml|gl|temp", re.IGNORECASE)


def canonical_value(value: Any, key: str | None = None) -> str:
    """Comparison key for a field value.

    Strings are trimmed, lowercased and whitespace-collapsed; numbers are
    rounded; lists of strings compare as sorted sets of canonical items.
    """
    if value is None:
        return "∅"
    if isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        digits = 3 if key and _PRECISE_KEY.search(key) else 2
        rounded = round(float(value), digits)
        return repr(int(rounded)) if rounded.is_integer() else repr(rounded)
    if isinstance(value, str):
        return re.sub(r"\s+", " ", value.strip().lower())
    if isinstance(value, list):
        items = [canonical_value(item) if isinstance(item, str) else item for item in value]
        return json.dumps(sorted(items, key=lambda x: json.dumps(x, sort_keys=True, default=str)),
                          sort_keys=True, default=str)
    return json.dumps(value, sort_keys=True, default=str)


def is_filled(value: Any) -> bool:
    """Whether a value carries data (non-null, non-blank, non-empty)."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return True


@dataclass
class Consensus:
    """Reconciled result plus per-field agreement (0-1)."""

    result: dict[str, Any]
    agreement: dict[str, float] = field(default_factory=dict)


def _field_order(results: list[dict[str, Any]]) -> list[str]:
    names: list[str] = []
    for result in results:
        for name in result:
            if name not in NON_FIELD_KEYS and name not in names:
                names.append(name)
    return names


def _majority(values: list[Any], key: str) -> tuple[Any, int]:
    """Most frequent value by canonical form; ties go to the earliest value."""
    counts: dict[str, int] = {}
    first_seen: dict[str, Any] = {}
    for value in values:
        canon = canonical_value(value, key)
        counts[canon] = counts.get(canon, 0) + 1
        first_seen.setdefault(canon, value)

    # dicts preserve insertion order, and max() keeps the first of equal counts
    best = max(counts, key=lambda c: counts[c])
    return first_seen[best], counts[best]


def majority_value(values: list[Any], key: str | None = None) -> Any:
    """Most frequent filled value (canonical comparison), earliest on a tie."""
    filled = [v for v in values if is_filled(v)]
    if not filled:
        return None
    return _majority(filled, key or "")[0]


def _merge_citations(results: list[dict[str, Any]]) -> dict[str, list[Any]]:
    merged: dict[str, list[Any]] = {}
    seen: dict[str, set[str]] = {}
    for result in results:
        citations = result.get("citations")
        if not isinstance(citations, dict):
            continue
        for name, items in citations.items():
            if not isinstance(items, list):
                continue
            bucket = merged.setdefault(name, [])
            keys = seen.setdefault(name, set())
            for item in items:
                key = json.dumps(item, sort_keys=True, default=str)
                if key not in keys:
                    keys.add(key)
                    bucket.append(item)
    return merged


def reconcile_results(
    results: list[dict[str, Any]],
    fields: list[str] | None = None,
) -> Consensus:
    """Merge results field by field.

    For each field the most frequent non-null value wins (compared in
    canonical form); on a tie the value from the earliest run wins.
    Agreement for a field is the winning count over the number of results.
    Citations from every result are unioned.

    Args:
        results: Successful results, in run order
        fields: Field names to reconcile; defaults to every key seen

    Returns:
        Consensus with the merged result and per-field agreement
    """
    dict_results = [r for r in results if isinstance(r, dict)]
    if not dict_results:
        return Consensus(result={})

    total = len(dict_results)
    names = fields if fields is not None else _field_order(dict_results)

    merged: dict[str, Any] = {}
    agreement: dict[str, float] = {}
    for name in names:
        values = [r.get(name) for r in dict_results if is_filled(r.get(name))]
        if not values:
            merged[name] = None
            agreement[name] = 0.0
            continue

        value, count = _majority(values, name)
        merged[name] = value
        agreement[name] = min(1.0, count / total)

    citations = _merge_citations(dict_results)
    if citations:
        merged["citations"] = citations

    return Consensus(result=merged, agreement=agreement)


def field_agreement(results: list[dict[str, Any]], fields: list[str] | None = None) -> dict[str, float]:
    """Per-field agreement across results, without merging them."""
    return reconcile_results(results, fields).agreement


def _unit(value: float) -> float:
    # Some providers report confidence on a 0-100 scale
    if value > 1.0:
        value = value / 100
    return min(1.0, max(0.0, value))


def mean_confidence(confidence: dict[str, Any] | None) -> float | None:
    """Mean of the numeric values in a confidence map, clamped to 0-1."""
    if not isinstance(confidence, dict):
        return None
    values = [
        _unit(float(v))
        for v in confidence.values()
        if isinstance(v, (int, float)) and not isinstance(v, bool) and not math.isnan(v)
    ]
    if not values:
        return None
    return sum(values) / len(values)
