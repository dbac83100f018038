"""Validation and normalization of AI classifier output.

The model is asked for bare JSON but may wrap it in prose or code fences.
Anything that cannot be turned into a valid `Classification` becomes an
`AnalysisFailure`, never a partial result.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from ..errors import AnalysisFailure
from ..models import Category, Classification

REQUIRED_FIELDS: tuple[str, ...] = (
    "issueType",
    "rootCause",
    "suggestedFix",
    "severity",
    "category",
    "confidence",
)


def _balanced_objects(text: str) -> Iterator[str]:
    """Yield balanced `{...}` substrings, in order of their opening brace."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start : i + 1]
                    break
        start = text.find("{", start + 1)


def extract_json_object(text: str) -> str | None:
    """Return the first balanced substring that decodes to a JSON object.

    Falls back to the first balanced substring (so the caller reports a parse
    error) and None when the text has no balanced braces at all.
    """
    first: str | None = None
    for candidate in _balanced_objects(text):
        if first is None:
            first = candidate
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return candidate
    return first


def coerce_confidence(value: Any) -> int | None:
    """Coerce a confidence value into an int in [0, 100]; None if not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        s = value.strip().rstrip("%").strip()
        try:
            value = float(s)
        except ValueError:
            return None
    if not isinstance(value, int | float) or not math.isfinite(value):
        return None
    return max(0, min(100, round(value)))


def _as_str_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) if isinstance(v, int | float) else v for v in value if v is not None]
    return value


def normalize_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `data` with tolerable shape differences fixed up."""
    out = dict(data)

    confidence = coerce_confidence(out.get("confidence"))
    if confidence is None:
        raise AnalysisFailure.schema_violation(
            f"confidence must be a number, got {out.get('confidence')!r}"
        )
    out["confidence"] = confidence

    out["suggestedFix"] = _as_str_list(out.get("suggestedFix"))
    out["relatedLogs"] = _as_str_list(out.get("relatedLogs"))
    if out.get("category") is None:
        out["category"] = Category.UNKNOWN.value
    return out


def parse_classification(text: str) -> Classification:
    """Parse raw AI response text into a validated `Classification`."""
    raw = extract_json_object(text)
    if raw is None:
        raise AnalysisFailure.invalid_response("No JSON object found in AI response")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise AnalysisFailure.invalid_response(f"AI response is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise AnalysisFailure.invalid_response("AI response JSON is not an object")

    missing = [field for field in REQUIRED_FIELDS if field not in data]
    if missing:
        raise AnalysisFailure.schema_violation(
            f"Missing required fields in AI response: {', '.join(missing)}",
            missing=missing,
        )

    try:
        return Classification.model_validate(normalize_fields(data))
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        detail = ", ".join(fields) if fields else "model constraints"
        raise AnalysisFailure.schema_violation(
            f"AI response failed validation: {detail}"
        ) from e
