"""Shared base for analysis result models."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict


class AnalysisModel(BaseModel):
    """Lenient result model: every field optional, unknown keys dropped."""

    model_config = ConfigDict(extra="ignore")


_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")


def parse_french_number(value: Any) -> Any:
    """Convert "13,5% vol" style strings to 13.5; other values pass through."""
    if isinstance(value, str):
        match = _NUMBER.search(value)
        if match is None:
            return None
        return float(match.group().replace(",", "."))
    return value
