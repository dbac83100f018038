from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from log_incident_analyzer.core.config import AnalyzerConfig
from log_incident_analyzer.core.errors import AnalysisFailure
from log_incident_analyzer.core.models import Classification, Severity


class FakeClassifier:
    """Stand-in for the AI classifier: returns a fixed answer or raises."""

    name = "fake-model"

    def __init__(self, result: Classification | AnalysisFailure) -> None:
        self.result = result
        self.calls: list[str] = []

    async def classify(self, text: str) -> Classification:
        self.calls.append(text)
        if isinstance(self.result, AnalysisFailure):
            raise self.result
        return self.result


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def ai_answer() -> Classification:
    return Classification(
        issue_type="Database Connection Error",
        root_cause="Postgres refused the connection.",
        suggested_fix=["Start the database", "Check the connection string"],
        severity=Severity.CRITICAL,
        category="database",
        confidence=88,
        related_logs=["ECONNREFUSED"],
    )


@pytest.fixture
def fake_classifier() -> Callable[[Classification | AnalysisFailure], FakeClassifier]:
    return FakeClassifier


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 12, 30, 8, 0, 0, tzinfo=UTC))


@pytest.fixture
def analyzer_config(tmp_path: Path) -> AnalyzerConfig:
    return AnalyzerConfig(
        cache_dir=tmp_path / "cache",
        classifier="ai",
        max_retries=1,
        retry_backoff_s=0.0,
        ai_timeout_s=5.0,
    )
