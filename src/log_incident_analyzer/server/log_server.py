"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: analyze a log excerpt or a log file into an incident summary
- Resources: addressable data blobs (schemas, rule signatures, redacted logs)
- Prompts: reusable conversation templates that clients can invoke

Run locally (stdio):
    python -m log_incident_analyzer.server.log_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from log_incident_analyzer.prompts.registry import register_prompts
from log_incident_analyzer.resources.registry import register_resources
from log_incident_analyzer.tools.analyze import analyze_log_file_impl, analyze_log_impl

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = os.getenv("LOG_ANALYZER_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("log-incident-analyzer", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
async def analyze_log(log_text: str, force: bool = False) -> dict[str, Any]:
    """Analyze a raw log excerpt and return a structured incident summary.

    Parameters
    ----------
    log_text:
        The log content. Sensitive values (IPs, emails, keys, paths, timestamps,
        card and SSN-like numbers) are redacted before caching or AI analysis.
    force:
        When true, skip the cached result and analyze again (the new result is cached).

    Returns
    -------
    dict:
        {"success": bool, "analysis": {...}, "metadata": {...}, "cached": bool,
         "fallback": bool, "fallbackReason"?: {...}, "error"?: {"message", "code"}}
    """
    return await analyze_log_impl(log_text=log_text, force=force)


@mcp.tool()
async def analyze_log_file(log_path: str, force: bool = False) -> dict[str, Any]:
    """Analyze a log file under LOG_ANALYZER_BASE_DIR (.log, .txt, .json, optionally .gz).

    Returns the same structure as `analyze_log`, plus "filename".
    """
    return await analyze_log_file_impl(log_path=log_path, force=force)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
