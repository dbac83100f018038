"""Prompt construction for AI classification."""

from __future__ import annotations

from ..models import Category, Severity


def build_analysis_prompt(redacted_log: str) -> str:
    """Build the Gemini prompt for one redacted log excerpt."""
    severities = " | ".join(s.value for s in Severity)
    categories = ", ".join(f"'{c.value}'" for c in Category)
    return (
        "You are an expert log analyzer.\n"
        "Analyze the log below and return ONLY a JSON object with exactly these fields:\n"
        "{\n"
        '  "issueType": "Short type of issue (e.g. \'Database Connection Error\')",\n'
        '  "rootCause": "Detailed explanation of the root cause",\n'
        '  "suggestedFix": ["Step 1: first action", "Step 2: next action"],\n'
        f'  "severity": "{severities}",\n'
        f'  "category": "One of: {categories}",\n'
        '  "confidence": "Integer confidence in this analysis, 0-100",\n'
        '  "relatedLogs": ["patterns or keywords that identify similar issues"]\n'
        "}\n"
        "Rules:\n"
        "- Only use evidence from the given log.\n"
        "- Values like <REDACTED_IP> are placeholders for removed sensitive data.\n"
        "- If nothing looks like an incident, say so with severity Low and category "
        "'informational'.\n"
        "- Respond with valid JSON only, no additional text.\n\n"
        f"LOG (redacted):\n{redacted_log}\n"
    )
