"""Redaction of sensitive substrings from log text.

Every rule replaces its matches with a fixed per-category placeholder
(`<REDACTED_IP>`, `<REDACTED_EMAIL>`, ...). Placeholders never match any
rule, so redaction is idempotent and the fingerprint of redacted text is
stable.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RedactionRule:
    """Replace all non-overlapping matches of `pattern` with a placeholder."""

    name: str
    pattern: re.Pattern[str]

    @property
    def placeholder(self) -> str:
        return f"<REDACTED_{self.name}>"

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.placeholder, text)


_URL_RE = re.compile(r"(?i)\bhttps?://[^\s\"'<>]+")
_EMAIL_RE = re.compile(r"(?i)\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b")
_KEY_RE = re.compile(
    r"(?i)\b(?:api[_-]?key|key|token|secret|password)\s*[=:]\s*[\"']?[A-Za-z0-9_\-]{20,}[\"']?"
)
_TIMESTAMP_RE = re.compile(
    r"(?<![\d-])\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?"
)
_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
# Not after a word char, '/', '.', ':', '-' or a placeholder, so HTTP/1.1 survives.
_PATH_RE = re.compile(
    r"(?<![\w/.:\->])(?:/[\w.\-]+)+/?"
    r"|\b[A-Za-z]:\\(?:[\w.\-]+\\)*[\w.\-]+"
)
_CARD_RE = re.compile(r"\b(?:\d[ -]?){12,15}\d\b")
_SSN_RE = re.compile(r"\b\d{3}[-.]?\d{2}[-.]?\d{4}\b")

# URLs first so an address embedding an IP, path or email collapses into one token.
DEFAULT_REDACTION_RULES: tuple[RedactionRule, ...] = (
    RedactionRule("URL", _URL_RE),
    RedactionRule("EMAIL", _EMAIL_RE),
    RedactionRule("KEY", _KEY_RE),
    RedactionRule("TIMESTAMP", _TIMESTAMP_RE),
    RedactionRule("IP", _IPV4_RE),
    RedactionRule("PATH", _PATH_RE),
    RedactionRule("CARD", _CARD_RE),
    RedactionRule("SSN", _SSN_RE),
)


def redact_text(text: str, rules: Sequence[RedactionRule] = DEFAULT_REDACTION_RULES) -> str:
    """Redact sensitive tokens from log text."""
    if not text:
        return ""
    for rule in rules:
        text = rule.apply(text)
    return text


__all__ = ["DEFAULT_REDACTION_RULES", "RedactionRule", "redact_text"]
