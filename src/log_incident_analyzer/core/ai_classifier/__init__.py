"""AI classification package."""

from __future__ import annotations

from .parsing import REQUIRED_FIELDS, extract_json_object, parse_classification
from .prompt import build_analysis_prompt
from .service import GeminiClassifier

__all__ = [
    "REQUIRED_FIELDS",
    "GeminiClassifier",
    "build_analysis_prompt",
    "extract_json_object",
    "parse_classification",
]
