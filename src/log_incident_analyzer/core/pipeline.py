"""Analysis pipeline: redact -> fingerprint -> cache -> classify -> cache -> return.

`LogAnalyzer.analyze` is the single entry point used by the tools and the
CLI. It never raises for bad input or classifier trouble: input problems
come back as `success=False` responses, classifier failures are absorbed
into a degraded (`fallback=True`) record.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from .ai_classifier import GeminiClassifier
from .cache import ResultCache
from .config import AnalyzerConfig
from .errors import AnalysisFailure, EmptyInputError, ErrorCode, InputError, TooLargeError
from .fingerprint import fingerprint
from .models import (
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResponse,
    Category,
    Classification,
    ErrorInfo,
    FallbackInfo,
    IncidentRecord,
    Severity,
    utcnow,
)
from .redaction import redact_text
from .rules import RuleClassifier

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "fallback"

SERVICE_UNAVAILABLE = Classification(
    issue_type="Analysis service unavailable",
    root_cause=(
        "The AI analysis service is currently unavailable or returned an invalid response."
    ),
    suggested_fix=[
        "Check the analyzer logs for AI service errors.",
        "Verify GEMINI_API_KEY and network access to the Gemini API.",
    ],
    severity=Severity.MEDIUM,
    category=Category.CONFIGURATION,
    confidence=50,
    related_logs=["AI service error", "Gemini API", "GEMINI_API_KEY"],
)


class IncidentClassifier(Protocol):
    """Anything that turns redacted log text into a `Classification`."""

    @property
    def name(self) -> str: ...

    async def classify(self, text: str) -> Classification:
        """Classify text or raise `AnalysisFailure`."""
        ...


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


def _log_orphaned_failure(task: asyncio.Future) -> None:
    """Retrieve and log the outcome of a classification whose caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background analysis failed after its caller was cancelled", exc_info=exc)


def check_log_size(log_text: str, max_bytes: int) -> int:
    """Return the UTF-8 size of `log_text`; raise if empty or over `max_bytes`."""
    if not isinstance(log_text, str) or not log_text.strip():
        raise EmptyInputError()
    size = len(log_text.encode("utf-8", errors="surrogatepass"))
    if size > max_bytes:
        raise TooLargeError(size, max_bytes)
    return size


class LogAnalyzer:
    """Composes redaction, caching and classification into one request contract."""

    def __init__(
        self,
        cfg: AnalyzerConfig | None = None,
        *,
        cache: ResultCache | None = None,
        ai_classifier: IncidentClassifier | None = None,
        rule_classifier: RuleClassifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.cfg = cfg or AnalyzerConfig()
        self._clock = clock
        self.cache = cache or ResultCache(self.cfg.cache_dir, ttl=self.cfg.cache_ttl, clock=clock)
        self.rules = rule_classifier or RuleClassifier()
        if ai_classifier is None and self.cfg.classifier == "ai":
            ai_classifier = GeminiClassifier(self.cfg)
        self.ai = ai_classifier

    async def analyze_request(self, request: AnalysisRequest) -> AnalysisResponse:
        return await self.analyze(request.log_text, force=request.force)

    async def analyze(self, log_text: str, *, force: bool = False) -> AnalysisResponse:
        """Analyze one log excerpt. `force` skips the cache lookup, not the cache write."""
        started = time.perf_counter()
        try:
            return await self._analyze(log_text, force=force, started=started)
        except InputError as e:
            logger.info("Rejected log submission (%s): %s", e.code.value, e.message)
            return AnalysisResponse(success=False, error=ErrorInfo(message=e.message, code=e.code))
        except Exception:
            logger.exception("Unexpected error while analyzing log")
            return AnalysisResponse(
                success=False,
                error=ErrorInfo(
                    message="Internal error while analyzing log",
                    code=ErrorCode.INTERNAL_ERROR,
                ),
            )

    async def _analyze(self, log_text: str, *, force: bool, started: float) -> AnalysisResponse:
        check_log_size(log_text, self.cfg.max_log_bytes)

        redacted = redact_text(log_text, self.cfg.redaction_rules)
        log_hash = fingerprint(redacted)
        metadata = AnalysisMetadata(log_size=len(log_text), redacted_log_size=len(redacted))

        if not force:
            entry = await self.cache.get(log_hash)
            if entry is not None:
                logger.info("Using cached result for log hash %s", log_hash)
                record = entry.record.model_copy(
                    update={"processing_time_ms": _elapsed_ms(started)}
                )
                metadata.cache_hit = True
                metadata.model = entry.model
                return AnalysisResponse(
                    success=True,
                    analysis=record,
                    metadata=metadata,
                    cached=True,
                    fallback=entry.fallback is not None,
                    fallback_reason=entry.fallback,
                )

        logger.info("Analyzing log (%s chars, hash %s)", len(log_text), log_hash)
        # A cancelled caller does not abort classification; the result still lands in the cache.
        task = asyncio.ensure_future(self._classify_and_store(redacted, log_hash, started))
        try:
            record, model, reason = await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(_log_orphaned_failure)
            raise
        metadata.model = model
        return AnalysisResponse(
            success=True,
            analysis=record,
            metadata=metadata,
            cached=False,
            fallback=reason is not None,
            fallback_reason=reason,
        )

    async def _classify_and_store(
        self, redacted: str, log_hash: str, started: float
    ) -> tuple[IncidentRecord, str, FallbackInfo | None]:
        classification, model, reason = await self._classify(redacted)

        record = IncidentRecord(
            **classification.model_dump(),
            log_hash=log_hash,
            analyzed_at=self._clock(),
            processing_time_ms=_elapsed_ms(started),
        )

        if reason is None or self.cfg.cache_fallback_results:
            await self.cache.put(log_hash, record, model=model, fallback=reason)

        logger.info(
            "Analysis of %s completed in %sms (model=%s, fallback=%s)",
            log_hash,
            record.processing_time_ms,
            model,
            reason is not None,
        )
        return record, model, reason

    async def _classify(self, redacted: str) -> tuple[Classification, str, FallbackInfo | None]:
        if self.cfg.classifier != "ai" or self.ai is None:
            return await self.rules.classify(redacted), self.rules.name, None

        try:
            return await self.ai.classify(redacted), self.ai.name, None
        except AnalysisFailure as e:
            logger.warning(
                "AI classification failed (%s): %s; falling back to %s",
                e.kind.value,
                e.message,
                self.cfg.fallback_strategy,
            )
            reason = FallbackInfo(kind=e.kind, message=e.message, missing=list(e.missing))

        if self.cfg.fallback_strategy == "unavailable":
            return SERVICE_UNAVAILABLE.model_copy(deep=True), FALLBACK_MODEL, reason
        return await self.rules.classify(redacted), self.rules.name, reason
