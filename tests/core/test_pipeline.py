from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import timedelta

import pytest

from log_incident_analyzer.core.errors import AnalysisFailure, ErrorCode
from log_incident_analyzer.core.fingerprint import fingerprint
from log_incident_analyzer.core.models import AnalysisRequest, Severity
from log_incident_analyzer.core.pipeline import FALLBACK_MODEL, LogAnalyzer
from log_incident_analyzer.core.redaction import redact_text

DB_LOG = "2024-01-01 10:00:00 ECONNREFUSED connecting to postgres database"


@pytest.fixture
def make_analyzer(analyzer_config, clock):
    def _make(classifier=None, /, **overrides) -> LogAnalyzer:
        cfg = replace(analyzer_config, **overrides)
        return LogAnalyzer(cfg, ai_classifier=classifier, clock=clock)

    return _make


@pytest.mark.asyncio
async def test_first_analysis_uses_ai_and_caches(make_analyzer, fake_classifier, ai_answer) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake)

    resp = await analyzer.analyze(DB_LOG)

    assert resp.success
    assert not resp.cached
    assert not resp.fallback
    assert resp.error is None
    assert resp.analysis.issue_type == "Database Connection Error"
    assert resp.analysis.log_hash == fingerprint(redact_text(DB_LOG))
    assert resp.metadata.model == "fake-model"
    assert resp.metadata.log_size == len(DB_LOG)
    assert analyzer.cache.path_for(resp.analysis.log_hash).exists()


@pytest.mark.asyncio
async def test_classifier_only_sees_redacted_text(make_analyzer, fake_classifier, ai_answer) -> None:
    fake = fake_classifier(ai_answer)
    await make_analyzer(fake).analyze(DB_LOG)

    assert fake.calls == [redact_text(DB_LOG)]
    assert "2024-01-01" not in fake.calls[0]


@pytest.mark.asyncio
async def test_second_analysis_is_served_from_cache(
    make_analyzer, fake_classifier, ai_answer
) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake)

    first = await analyzer.analyze(DB_LOG)
    second = await analyzer.analyze(DB_LOG)

    assert len(fake.calls) == 1
    assert second.cached
    assert second.metadata.cache_hit
    assert second.metadata.model == "fake-model"
    a = first.analysis.model_dump(exclude={"processing_time_ms"})
    b = second.analysis.model_dump(exclude={"processing_time_ms"})
    assert a == b


@pytest.mark.asyncio
async def test_logs_differing_only_in_redacted_values_share_a_result(
    make_analyzer, fake_classifier, ai_answer
) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake)

    await analyzer.analyze("2024-01-01 10:00:00 ECONNREFUSED 10.0.0.1 postgres database")
    resp = await analyzer.analyze("2025-03-04 11:12:13 ECONNREFUSED 10.9.9.9 postgres database")

    assert resp.cached
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_force_skips_lookup_but_rewrites_cache(
    make_analyzer, fake_classifier, ai_answer
) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake)

    await analyzer.analyze(DB_LOG)
    forced = await analyzer.analyze(DB_LOG, force=True)
    after = await analyzer.analyze(DB_LOG)

    assert len(fake.calls) == 2
    assert not forced.cached
    assert after.cached


@pytest.mark.asyncio
async def test_expired_entry_is_recomputed(make_analyzer, fake_classifier, ai_answer, clock) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake, cache_ttl=timedelta(hours=24))

    await analyzer.analyze(DB_LOG)
    clock.advance(timedelta(hours=25))
    resp = await analyzer.analyze(DB_LOG)

    assert not resp.cached
    assert len(fake.calls) == 2
    assert resp.analysis.analyzed_at == clock()


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   \n\t "])
async def test_empty_input_is_rejected_before_any_work(
    make_analyzer, fake_classifier, ai_answer, analyzer_config, text
) -> None:
    fake = fake_classifier(ai_answer)

    resp = await make_analyzer(fake).analyze(text)

    assert not resp.success
    assert resp.analysis is None
    assert resp.error.code is ErrorCode.EMPTY_INPUT
    assert resp.error.message == "Log content is empty or invalid"
    assert fake.calls == []
    assert not analyzer_config.cache_dir.exists()


@pytest.mark.asyncio
async def test_size_limit_counts_utf8_bytes(make_analyzer, fake_classifier, ai_answer) -> None:
    analyzer = make_analyzer(fake_classifier(ai_answer), max_log_bytes=10)

    at_limit = await analyzer.analyze("error 1234")
    over = await analyzer.analyze("error 12345")
    multibyte = await analyzer.analyze("éééééé")

    assert at_limit.success
    assert over.error.code is ErrorCode.TOO_LARGE
    assert "maximum size of 10 bytes" in over.error.message
    assert multibyte.error.code is ErrorCode.TOO_LARGE


@pytest.mark.asyncio
async def test_default_size_limit_is_five_mib(make_analyzer, fake_classifier, ai_answer) -> None:
    analyzer = make_analyzer(fake_classifier(ai_answer))
    limit = 5 * 1024 * 1024
    assert analyzer.cfg.max_log_bytes == limit

    at_limit = await analyzer.analyze("x" * limit)
    over = await analyzer.analyze("x" * (limit + 1))

    assert at_limit.success
    assert over.error.code is ErrorCode.TOO_LARGE


@pytest.mark.asyncio
async def test_ai_failure_falls_back_to_rules(make_analyzer, fake_classifier) -> None:
    fake = fake_classifier(AnalysisFailure.transport("Gemini unreachable"))
    analyzer = make_analyzer(fake)

    resp = await analyzer.analyze(DB_LOG)

    assert resp.success
    assert resp.fallback
    assert resp.fallback_reason.kind is ErrorCode.TRANSPORT_FAILURE
    assert resp.fallback_reason.message == "Gemini unreachable"
    assert resp.metadata.model == "rules"
    a = resp.analysis
    assert a.issue_type == "Database connection failure"
    assert a.severity is Severity.CRITICAL
    assert a.root_cause and a.suggested_fix and a.log_hash
    assert not analyzer.cache.path_for(a.log_hash).exists()


@pytest.mark.asyncio
async def test_fallback_results_are_recomputed(make_analyzer, fake_classifier) -> None:
    fake = fake_classifier(AnalysisFailure.invalid_response("not json"))
    analyzer = make_analyzer(fake)

    await analyzer.analyze(DB_LOG)
    resp = await analyzer.analyze(DB_LOG)

    assert not resp.cached
    assert len(fake.calls) == 2


@pytest.mark.asyncio
async def test_fallback_results_can_be_cached(make_analyzer, fake_classifier) -> None:
    failure = AnalysisFailure.schema_violation("missing fields", missing=["severity"])
    analyzer = make_analyzer(fake_classifier(failure), cache_fallback_results=True)

    await analyzer.analyze(DB_LOG)
    resp = await analyzer.analyze(DB_LOG)

    assert resp.cached
    assert resp.fallback
    assert resp.fallback_reason.kind is ErrorCode.SCHEMA_VIOLATION
    assert resp.fallback_reason.missing == ["severity"]


@pytest.mark.asyncio
async def test_unavailable_fallback_strategy(make_analyzer, fake_classifier) -> None:
    fake = fake_classifier(AnalysisFailure.transport("timeout"))
    analyzer = make_analyzer(fake, fallback_strategy="unavailable")

    resp = await analyzer.analyze(DB_LOG)

    assert resp.success
    assert resp.fallback
    assert resp.metadata.model == FALLBACK_MODEL
    assert resp.analysis.issue_type == "Analysis service unavailable"
    assert resp.analysis.suggested_fix


@pytest.mark.asyncio
async def test_rules_mode_never_calls_ai(make_analyzer, fake_classifier, ai_answer) -> None:
    fake = fake_classifier(ai_answer)
    analyzer = make_analyzer(fake, classifier="rules")

    resp = await analyzer.analyze(DB_LOG)

    assert fake.calls == []
    assert not resp.fallback
    assert resp.metadata.model == "rules"
    assert resp.analysis.category == "database"


def test_rules_mode_does_not_build_ai_client(analyzer_config) -> None:
    analyzer = LogAnalyzer(replace(analyzer_config, classifier="rules"))
    assert analyzer.ai is None


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_error(make_analyzer) -> None:
    class Broken:
        name = "broken"

        async def classify(self, text):
            raise RuntimeError("bug")

    resp = await make_analyzer(Broken()).analyze(DB_LOG)

    assert not resp.success
    assert resp.error.code is ErrorCode.INTERNAL_ERROR
    assert "bug" not in resp.error.message


@pytest.mark.asyncio
async def test_response_dict_shape(make_analyzer, fake_classifier, ai_answer) -> None:
    analyzer = make_analyzer(fake_classifier(ai_answer))

    ok = (await analyzer.analyze(DB_LOG)).to_dict()
    bad = (await analyzer.analyze("")).to_dict()

    assert ok["success"] is True
    assert ok["cached"] is False
    assert ok["analysis"]["issueType"] == "Database Connection Error"
    assert ok["analysis"]["severity"] == "Critical"
    assert set(ok["analysis"]) >= {
        "issueType",
        "rootCause",
        "suggestedFix",
        "severity",
        "category",
        "confidence",
        "relatedLogs",
        "logHash",
        "analyzedAt",
        "processingTimeMs",
    }
    assert bad["success"] is False
    assert "analysis" not in bad
    assert bad["error"] == {"message": "Log content is empty or invalid", "code": "EMPTY_INPUT"}


@pytest.mark.asyncio
async def test_analyze_request(make_analyzer, fake_classifier, ai_answer) -> None:
    analyzer = make_analyzer(fake_classifier(ai_answer))
    resp = await analyzer.analyze_request(AnalysisRequest(log_text=DB_LOG, force=True))
    assert resp.success


@pytest.mark.asyncio
async def test_cancelled_caller_still_caches_result(make_analyzer, ai_answer) -> None:
    class Gated:
        name = "gated"

        def __init__(self) -> None:
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def classify(self, text):
            self.started.set()
            await self.release.wait()
            return ai_answer

    gated = Gated()
    analyzer = make_analyzer(gated)
    path = analyzer.cache.path_for(fingerprint(redact_text(DB_LOG)))

    task = asyncio.create_task(analyzer.analyze(DB_LOG))
    await gated.started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    gated.release.set()
    for _ in range(200):
        if path.exists():
            break
        await asyncio.sleep(0.01)

    assert path.exists()
    assert (await analyzer.analyze(DB_LOG)).cached


@pytest.mark.asyncio
async def test_concurrent_identical_requests_are_consistent(
    make_analyzer, fake_classifier, ai_answer
) -> None:
    analyzer = make_analyzer(fake_classifier(ai_answer))

    results = await asyncio.gather(*(analyzer.analyze(DB_LOG) for _ in range(5)))

    assert all(r.success for r in results)
    assert len({r.analysis.log_hash for r in results}) == 1
    assert (await analyzer.analyze(DB_LOG)).cached


@pytest.mark.asyncio
async def test_cancelled_caller_failure_is_logged(make_analyzer, caplog) -> None:
    class GatedBroken:
        name = "gated-broken"

        def __init__(self) -> None:
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def classify(self, text):
            self.started.set()
            await self.release.wait()
            raise RuntimeError("late bug")

    caplog.set_level(logging.ERROR, logger="log_incident_analyzer.core.pipeline")
    gated = GatedBroken()
    analyzer = make_analyzer(gated)

    task = asyncio.create_task(analyzer.analyze(DB_LOG))
    await gated.started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    gated.release.set()
    for _ in range(200):
        if caplog.records:
            break
        await asyncio.sleep(0.01)

    [record] = caplog.records
    assert "caller was cancelled" in record.getMessage()
    assert isinstance(record.exc_info[1], RuntimeError)
    assert not analyzer.cache.path_for(fingerprint(redact_text(DB_LOG))).exists()
