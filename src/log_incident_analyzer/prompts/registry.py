"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def investigate_log_file(log_path: str, force: bool = False) -> list[dict[str, Any]]:
        """Build a prompt that explains an incident found in a log file."""
        force_flag = "true" if force else "false"
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior incident triage assistant for backend services. "
                    "Provide concise, evidence-based summaries from log data. "
                    "Do not invent details; if the evidence is insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Investigate the log file using analyze_log_file. Follow this workflow:\n"
                    f"- Call analyze_log_file with log_path={log_path!r} and force={force_flag}.\n"
                    "- If success is false, report error.code and error.message and stop.\n"
                    "- If fallback is true, say the AI analysis was unavailable "
                    "(fallbackReason.kind) and that the result comes from signature rules.\n"
                    "- Values like <REDACTED_IP> are redaction placeholders; do not guess them.\n\n"
                    "Return this structure:\n"
                    "1) Issue and severity (one line, include category and confidence)\n"
                    "2) Root cause (1-3 sentences)\n"
                    "3) Suggested fix (numbered, from analysis.suggestedFix)\n"
                    "4) Signatures to watch for (analysis.relatedLogs)\n"
                ),
            },
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": "Optional: the redacted log can be read via:",
                    },
                    {"type": "resource", "uri": f"log://{log_path}"},
                ],
            },
        ]
