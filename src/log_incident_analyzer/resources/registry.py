"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

import asyncio
from typing import Any

from mcp.server.fastmcp import FastMCP

from log_incident_analyzer.core.config import DEFAULT_MAX_LOG_BYTES
from log_incident_analyzer.core.models import IncidentRecord
from log_incident_analyzer.core.redaction import DEFAULT_REDACTION_RULES, redact_text
from log_incident_analyzer.core.rules import DEFAULT_RULES
from log_incident_analyzer.tools.files import (
    ALLOWED_FILE_SUFFIXES,
    BASE_DIR_ENV,
    base_dir,
    read_log_text,
    resolve_log_path,
)

SAMPLE_LOG = (
    "2025-12-30T08:12:01Z [INFO] service started on 10.0.4.17:8080\n"
    "2025-12-30T08:12:03Z [WARNING] retrying request for ops@example.com\n"
    "2025-12-30T08:12:04Z [ERROR] ECONNREFUSED connecting to postgres database at 10.0.4.21:5432\n"
    "2025-12-30T08:12:05Z [CRITICAL] health check failed: database unavailable\n"
)


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-analyzer/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        base = base_dir()
        return (
            "Resources:\n"
            "- app://log-analyzer/help\n"
            "- app://log-analyzer/schemas/incident-record\n"
            "- app://log-analyzer/config/rules\n"
            "- app://log-analyzer/config/redaction\n"
            "- app://log-analyzer/examples/sample-log\n"
            f"- log://{{path}} (redacted contents; restricted to {BASE_DIR_ENV}; "
            f"allowed: {allowed}, .gz)\n"
            f"\nBase directory: {base}\n"
        )

    @mcp.resource("app://log-analyzer/examples/sample-log")
    def sample_log() -> str:
        """Return a tiny sample log for demos and tests."""
        return SAMPLE_LOG

    @mcp.resource("app://log-analyzer/schemas/incident-record")
    def incident_schema() -> dict[str, Any]:
        """Return the JSON schema for incident records."""
        return IncidentRecord.model_json_schema(by_alias=True)

    @mcp.resource("app://log-analyzer/config/rules")
    def rule_signatures() -> list[dict[str, Any]]:
        """Return the rule classifier's signatures in priority order."""
        return [rule.describe() for rule in DEFAULT_RULES]

    @mcp.resource("app://log-analyzer/config/redaction")
    def redaction_rules() -> list[dict[str, str]]:
        """Return the redaction rules in the order they are applied."""
        return [
            {"name": r.name, "placeholder": r.placeholder, "pattern": r.pattern.pattern}
            for r in DEFAULT_REDACTION_RULES
        ]

    @mcp.resource("log://{path}")
    async def redacted_log(path: str) -> str:
        """Return a log file as it would be sent for analysis (redacted)."""
        p = resolve_log_path(path)
        text = await asyncio.to_thread(read_log_text, p, max_bytes=DEFAULT_MAX_LOG_BYTES)
        return redact_text(text)
