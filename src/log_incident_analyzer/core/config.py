"""Analyzer configuration.

The orchestrator receives an explicit `AnalyzerConfig`; environment
overrides are applied once at bootstrap by `resolve_analyzer_config`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Literal

from .redaction import DEFAULT_REDACTION_RULES, RedactionRule

DEFAULT_MAX_LOG_BYTES = 5 * 1024 * 1024
DEFAULT_CACHE_TTL = timedelta(hours=24)

ClassifierMode = Literal["ai", "rules"]
FallbackStrategy = Literal["rules", "unavailable"]

_CLASSIFIER_MODES: tuple[str, ...] = ("ai", "rules")
_FALLBACK_STRATEGIES: tuple[str, ...] = ("rules", "unavailable")


@dataclass(frozen=True, slots=True)
class AnalyzerConfig:
    cache_dir: Path = Path(".cache")
    cache_ttl: timedelta = DEFAULT_CACHE_TTL
    max_log_bytes: int = DEFAULT_MAX_LOG_BYTES

    # "ai" tries the external model first; "rules" never leaves the process.
    classifier: ClassifierMode = "ai"
    model: str = "gemini-2.5-flash-lite"
    temperature: float = 0.1
    max_output_tokens: int = 2048
    ai_timeout_s: float = 30.0
    max_retries: int = 2
    retry_backoff_s: float = 0.5

    # What to return when the AI path fails.
    fallback_strategy: FallbackStrategy = "rules"
    cache_fallback_results: bool = False

    redaction_rules: tuple[RedactionRule, ...] = DEFAULT_REDACTION_RULES

    def __post_init__(self) -> None:
        if self.max_log_bytes < 1:
            raise ValueError("max_log_bytes must be >= 1")
        if self.cache_ttl <= timedelta(0):
            raise ValueError("cache_ttl must be positive")
        if self.classifier not in _CLASSIFIER_MODES:
            raise ValueError(f"classifier must be one of {', '.join(_CLASSIFIER_MODES)}")
        if self.fallback_strategy not in _FALLBACK_STRATEGIES:
            raise ValueError(
                f"fallback_strategy must be one of {', '.join(_FALLBACK_STRATEGIES)}"
            )
        if self.ai_timeout_s <= 0:
            raise ValueError("ai_timeout_s must be > 0")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_backoff_s < 0:
            raise ValueError("retry_backoff_s must be >= 0")


def _env_number(name: str, cast: type[int] | type[float]) -> int | float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        value = cast(raw)
    except ValueError as exc:
        kind = "an integer" if cast is int else "a number"
        raise ValueError(f"{name} must be {kind}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def resolve_analyzer_config(cfg: AnalyzerConfig | None = None) -> AnalyzerConfig:
    """Return config with optional env overrides applied."""
    if cfg is None:
        cfg = AnalyzerConfig()

    changes: dict[str, object] = {}

    cache_dir = os.getenv("LOG_ANALYZER_CACHE_DIR")
    if cache_dir:
        changes["cache_dir"] = Path(cache_dir).expanduser()

    ttl_hours = _env_number("LOG_ANALYZER_CACHE_TTL_HOURS", float)
    if ttl_hours is not None:
        changes["cache_ttl"] = timedelta(hours=ttl_hours)

    max_bytes = _env_number("LOG_ANALYZER_MAX_LOG_BYTES", int)
    if max_bytes is not None:
        changes["max_log_bytes"] = max_bytes

    timeout = _env_number("LOG_ANALYZER_AI_TIMEOUT", float)
    if timeout is not None:
        changes["ai_timeout_s"] = timeout

    classifier = os.getenv("LOG_ANALYZER_CLASSIFIER")
    if classifier:
        classifier = classifier.strip().lower()
        if classifier not in _CLASSIFIER_MODES:
            raise ValueError(
                f"LOG_ANALYZER_CLASSIFIER must be one of {', '.join(_CLASSIFIER_MODES)}"
            )
        changes["classifier"] = classifier

    model = os.getenv("LOG_ANALYZER_MODEL")
    if model:
        changes["model"] = model.strip()

    if not changes:
        return cfg
    return replace(cfg, **changes)
