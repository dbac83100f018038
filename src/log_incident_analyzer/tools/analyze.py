"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

import asyncio
from typing import Any

from log_incident_analyzer.core.config import resolve_analyzer_config
from log_incident_analyzer.core.errors import TooLargeError
from log_incident_analyzer.core.models import AnalysisResponse, ErrorInfo
from log_incident_analyzer.core.pipeline import LogAnalyzer
from log_incident_analyzer.tools.files import read_log_text, resolve_log_path

_analyzer: LogAnalyzer | None = None


def get_analyzer() -> LogAnalyzer:
    """Return the process-wide analyzer, built from env-resolved config on first use."""
    global _analyzer
    if _analyzer is None:
        _analyzer = LogAnalyzer(resolve_analyzer_config())
    return _analyzer


async def analyze_log_impl(
    *,
    log_text: str,
    force: bool = False,
    analyzer: LogAnalyzer | None = None,
) -> dict[str, Any]:
    """Implementation for the `analyze_log` MCP tool."""
    analyzer = analyzer or get_analyzer()
    response = await analyzer.analyze(log_text, force=force)
    return response.to_dict()


async def analyze_log_file_impl(
    *,
    log_path: str,
    force: bool = False,
    analyzer: LogAnalyzer | None = None,
) -> dict[str, Any]:
    """Implementation for the `analyze_log_file` MCP tool.

    Notes
    -----
    - log_path is resolved under LOG_ANALYZER_BASE_DIR (default: cwd).
    - Only .log, .txt and .json files (optionally gzipped) are accepted.
    - Oversized files are rejected without being read in full.
    """
    analyzer = analyzer or get_analyzer()
    path = resolve_log_path(log_path)

    try:
        text = await asyncio.to_thread(
            read_log_text, path, max_bytes=analyzer.cfg.max_log_bytes
        )
    except TooLargeError as e:
        response = AnalysisResponse(success=False, error=ErrorInfo(message=e.message, code=e.code))
    else:
        response = await analyzer.analyze(text, force=force)

    out = response.to_dict()
    out["filename"] = path.name
    return out
