from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from log_incident_analyzer.core.config import resolve_analyzer_config
from log_incident_analyzer.core.errors import ErrorCode, TooLargeError
from log_incident_analyzer.core.models import AnalysisResponse, ErrorInfo
from log_incident_analyzer.core.pipeline import LogAnalyzer
from log_incident_analyzer.tools.files import read_log_text

_CLIENT_ERRORS = {ErrorCode.EMPTY_INPUT, ErrorCode.TOO_LARGE}


async def _run(analyzer: LogAnalyzer, path: Path, *, force: bool) -> AnalysisResponse:
    try:
        text = await asyncio.to_thread(read_log_text, path, max_bytes=analyzer.cfg.max_log_bytes)
    except TooLargeError as e:
        return AnalysisResponse(success=False, error=ErrorInfo(message=e.message, code=e.code))
    return await analyzer.analyze(text, force=force)


def _print_summary(response: AnalysisResponse) -> None:
    a = response.analysis
    if a is None:
        return
    print(f"Issue:       {a.issue_type}")
    print(f"Severity:    {a.severity.value} ({a.category}, confidence {a.confidence}%)")
    print(f"Root cause:  {a.root_cause}")
    print("Suggested fix:")
    for i, step in enumerate(a.suggested_fix, start=1):
        print(f"  {i}. {step}")
    if a.related_logs:
        print(f"Signatures:  {', '.join(a.related_logs)}")
    source = "cache" if response.cached else (response.metadata.model or "-")
    print(f"\nLog hash {a.log_hash} ({source}, {a.processing_time_ms} ms)")
    if response.fallback and response.fallback_reason is not None:
        reason = response.fallback_reason
        print(f"Note: AI analysis unavailable ({reason.kind.value}: {reason.message}).")


def main() -> None:
    p = argparse.ArgumentParser(description="Summarize a log excerpt as a structured incident.")
    p.add_argument("log_path")
    p.add_argument("--force", action="store_true", help="Ignore cached results (still caches the new one)")
    p.add_argument("--rules-only", action="store_true", help="Skip the AI classifier, use signature rules only")
    p.add_argument("--cache-dir", default=None, help="Cache directory (default: .cache or LOG_ANALYZER_CACHE_DIR)")
    p.add_argument("--json", dest="as_json", action="store_true", help="Print the full JSON response")
    p.add_argument("-v", "--verbose", action="store_true", help="Log pipeline progress to stderr")

    args = p.parse_args()
    path = Path(args.log_path)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = resolve_analyzer_config()
        if args.rules_only:
            cfg = replace(cfg, classifier="rules")
        if args.cache_dir:
            cfg = replace(cfg, cache_dir=Path(args.cache_dir))
        response = asyncio.run(_run(LogAnalyzer(cfg), path, force=args.force))
    except OSError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    if args.as_json:
        print(json.dumps(response.to_dict(), indent=2))
    else:
        _print_summary(response)

    if response.error is not None:
        if not args.as_json:
            print(f"Error: {response.error.message}", file=sys.stderr)
        raise SystemExit(2 if response.error.code in _CLIENT_ERRORS else 1)


if __name__ == "__main__":
    main()
