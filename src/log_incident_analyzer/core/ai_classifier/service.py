"""LLM-facing classification logic.

Sends one redacted log excerpt to Gemini and turns the answer into a
validated `Classification`. Every failure leaves this module as an
`AnalysisFailure`; the orchestrator decides what to do with it.
"""

from __future__ import annotations

import asyncio
import logging
import os

from ..config import AnalyzerConfig
from ..errors import AnalysisFailure
from ..models import Classification
from .parsing import parse_classification
from .prompt import build_analysis_prompt

logger = logging.getLogger(__name__)
_CLASSIFICATION_SCHEMA = Classification.model_json_schema(by_alias=True)


def _resolve_api_key(api_key: str | None) -> str:
    key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not key:
        raise AnalysisFailure.transport("Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")
    return key


async def _call_gemini(prompt: str, *, cfg: AnalyzerConfig, api_key: str | None) -> str:
    """Call Gemini once and return the raw response text."""
    key = _resolve_api_key(api_key)

    try:
        from google import genai
    except ImportError as e:  # pragma: no cover
        raise AnalysisFailure.transport(
            "google-genai is required for AI classification. Install with: pip install google-genai"
        ) from e

    client = genai.Client(api_key=key)
    resp = await client.aio.models.generate_content(
        model=cfg.model,
        contents=prompt,
        config={
            "response_mime_type": "application/json",
            "response_json_schema": _CLASSIFICATION_SCHEMA,
            "temperature": cfg.temperature,
            "max_output_tokens": cfg.max_output_tokens,
        },
    )
    if not resp.text:
        raise AnalysisFailure.invalid_response("No valid response from AI service")
    return resp.text


class GeminiClassifier:
    """External structured-output classifier backed by Gemini."""

    def __init__(self, cfg: AnalyzerConfig, *, api_key: str | None = None) -> None:
        self.cfg = cfg
        self._api_key = api_key

    @property
    def name(self) -> str:
        return self.cfg.model

    async def classify(self, redacted_text: str) -> Classification:
        """Classify redacted log text; raises `AnalysisFailure` on any failure.

        Each attempt is bounded by `cfg.ai_timeout_s`. Transport errors and
        timeouts are retried up to `cfg.max_retries` attempts.
        """
        cfg = self.cfg
        prompt = build_analysis_prompt(redacted_text)

        last_err: Exception | None = None
        reason = "no attempt was made"
        for attempt in range(1, cfg.max_retries + 1):
            try:
                text = await asyncio.wait_for(
                    _call_gemini(prompt, cfg=cfg, api_key=self._api_key),
                    timeout=cfg.ai_timeout_s,
                )
                return parse_classification(text)
            except AnalysisFailure:
                # Missing key/library or an unusable answer: retrying won't help.
                raise
            except TimeoutError as e:
                last_err = e
                reason = f"no answer within {cfg.ai_timeout_s:g}s"
            except Exception as e:
                last_err = e
                reason = str(e) or type(e).__name__

            if attempt >= cfg.max_retries:
                break
            sleep_s = min(4.0, cfg.retry_backoff_s * 2 ** (attempt - 1))
            logger.warning(
                "Gemini call failed (attempt %s/%s): %s", attempt, cfg.max_retries, reason
            )
            await asyncio.sleep(sleep_s)

        raise AnalysisFailure.transport(
            f"AI service call failed after {cfg.max_retries} attempts: {reason}"
        ) from last_err
