"""Deterministic signature-based incident classifier.

Rules are evaluated top to bottom and the first match wins, so the order of
`DEFAULT_RULES` is the priority order. Rules match structural tokens
(`ECONNREFUSED`, `HTTP/1.1 503`, exception names), never values that
redaction replaces.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .models import Category, Classification, Severity

_FLAGS = re.IGNORECASE | re.MULTILINE


@dataclass(frozen=True, slots=True)
class SignatureRule:
    """A predicate (all patterns must match) paired with a fixed output template."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    issue_type: str
    root_cause: str
    suggested_fix: tuple[str, ...]
    severity: Severity
    category: Category
    confidence: int
    related_logs: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return all(p.search(text) for p in self.patterns)

    def to_classification(self) -> Classification:
        return Classification(
            issue_type=self.issue_type,
            root_cause=self.root_cause,
            suggested_fix=list(self.suggested_fix),
            severity=self.severity,
            category=self.category,
            confidence=self.confidence,
            related_logs=list(self.related_logs),
        )

    def describe(self) -> dict[str, Any]:
        """JSON-friendly summary used by the rules resource."""
        return {
            "name": self.name,
            "issueType": self.issue_type,
            "severity": self.severity.value,
            "category": self.category.value,
            "confidence": self.confidence,
            "patterns": [p.pattern for p in self.patterns],
        }


def _rule(name: str, *patterns: str, **template: Any) -> SignatureRule:
    return SignatureRule(
        name=name,
        patterns=tuple(re.compile(p, _FLAGS) for p in patterns),
        **template,
    )


DEFAULT_RULES: tuple[SignatureRule, ...] = (
    _rule(
        "http_5xx",
        r"\bHTTP/\d(?:\.\d)?\"?\s+5\d{2}\b"
        r"|\bstatus(?:_?code)?[\"']?\s*[=:]\s*[\"']?5\d{2}\b"
        r"|\b5\d{2}\s+(?:Internal Server Error|Bad Gateway|Service Unavailable|Gateway Time-?out)\b"
        r"|\b(?:Internal Server Error|Bad Gateway|Service Unavailable|Gateway Time-?out)\b"
        r"|\b5xx\b",
        issue_type="HTTP 5xx server error",
        root_cause=(
            "The service (or an upstream it depends on) answered requests with 5xx status "
            "codes, meaning the request reached the server but it failed while handling it."
        ),
        suggested_fix=(
            "Inspect the application error log around the first 5xx response for the underlying exception.",
            "Check the health and recent deployments of the upstream service behind the proxy or gateway.",
            "Roll back the latest change if the errors started right after a deploy.",
            "Add alerting on the 5xx rate so regressions are caught early.",
        ),
        severity=Severity.HIGH,
        category=Category.APPLICATION,
        confidence=80,
        related_logs=("HTTP 500", "HTTP 502", "HTTP 503", "HTTP 504", "Internal Server Error", "5xx"),
    ),
    _rule(
        "out_of_memory",
        r"\bOutOfMemoryError\b|\bout of memory\b|\bOOMKilled\b|\bOOM[- ]killer\b"
        r"|\bheap space\b|\bMemoryError\b|\bcannot allocate memory\b|\bENOMEM\b",
        issue_type="Out of memory",
        root_cause=(
            "The process exhausted its available memory and was killed or could not allocate "
            "more, typically from a leak, an oversized workload or a too-small memory limit."
        ),
        suggested_fix=(
            "Check memory usage trends to tell a leak apart from a load spike.",
            "Raise the container or heap memory limit as a short-term mitigation.",
            "Profile the application to find the allocation hot spot or leaking objects.",
            "Bound caches, batch sizes and in-memory buffers.",
        ),
        severity=Severity.CRITICAL,
        category=Category.RESOURCE,
        confidence=90,
        related_logs=("OutOfMemoryError", "OOMKilled", "out of memory", "heap space", "ENOMEM"),
    ),
    _rule(
        "disk_full",
        r"\bno space left on device\b|\bENOSPC\b|\bdisk (?:is )?full\b|\bdisk quota exceeded\b",
        issue_type="Disk space exhausted",
        root_cause="A filesystem the service writes to is full, so writes are failing.",
        suggested_fix=(
            "Free space on the affected volume (rotate or delete old logs, temp files and artifacts).",
            "Expand the volume or move data to larger storage.",
            "Enable log rotation and retention limits.",
            "Add disk usage alerts well before the volume fills up.",
        ),
        severity=Severity.CRITICAL,
        category=Category.RESOURCE,
        confidence=90,
        related_logs=("No space left on device", "ENOSPC", "disk full"),
    ),
    _rule(
        "database_connection",
        r"\bECONNREFUSED\b|\bconnection refused\b|\bcould not connect\b|\bunable to connect\b"
        r"|\bfailed to connect\b|\bcan't connect\b|\bconnection (?:reset|closed|terminated|timed out)\b"
        r"|\btoo many connections\b|\bconnection pool (?:exhausted|timeout)\b",
        r"\b(?:database|db|postgres(?:ql)?|mysql|mariadb|mongo(?:db)?|redis|sql ?server"
        r"|oracle|sqlite|jdbc|psycopg2?|sequelize|hikari(?:cp)?)\b",
        issue_type="Database connection failure",
        root_cause=(
            "The application could not open or keep a connection to its database. The database "
            "may be down, unreachable from this host, or refusing connections (e.g. max "
            "connections reached)."
        ),
        suggested_fix=(
            "Verify the database server is running and accepting connections on the expected host and port.",
            "Check network reachability and firewall or security-group rules between the app and the database.",
            "Confirm the connection string and credentials the application is using.",
            "Review connection pool size against the database's max_connections limit.",
        ),
        severity=Severity.CRITICAL,
        category=Category.DATABASE,
        confidence=90,
        related_logs=("ECONNREFUSED", "connection refused", "could not connect", "too many connections"),
    ),
    _rule(
        "database_query",
        r"\bdeadlock\b|\bSQLSTATE\b|\bsyntax error at or near\b|\bduplicate key\b"
        r"|\b(?:SQLException|OperationalError|IntegrityError|ProgrammingError)\b"
        r"|\brelation \"?[\w.]+\"? does not exist\b|\bORA-\d{5}\b|\bER_[A-Z_]+\b|\block wait timeout\b",
        issue_type="Database query error",
        root_cause=(
            "Queries reached the database but failed: constraint violations, invalid SQL, "
            "missing schema objects or lock contention."
        ),
        suggested_fix=(
            "Find the failing statement and reproduce it against a staging database.",
            "Check that pending schema migrations were applied to this environment.",
            "For deadlocks or lock timeouts, review transaction scope and lock ordering.",
        ),
        severity=Severity.HIGH,
        category=Category.DATABASE,
        confidence=80,
        related_logs=("SQLSTATE", "deadlock", "duplicate key", "lock wait timeout"),
    ),
    _rule(
        "authentication_failure",
        r"\bauthentication failed\b|\bauthentication error\b|\blogin failed\b"
        r"|\binvalid (?:credentials|password|username|api key|token)\b|\bbad credentials\b"
        r"|\b401 Unauthorized\b|\bHTTP/\d(?:\.\d)?\"?\s+401\b|\bUnauthorized\b"
        r"|\b(?:token|jwt) (?:has )?expired\b|\binvalid signature\b",
        issue_type="Authentication failure",
        root_cause=(
            "Requests were rejected because the caller's identity could not be verified: wrong "
            "or expired credentials, tokens or keys."
        ),
        suggested_fix=(
            "Check that the credentials or API keys in use are current and were not rotated.",
            "Verify token expiry and clock skew between the issuer and the service.",
            "Look for repeated failures from one source, which may indicate brute forcing.",
        ),
        severity=Severity.HIGH,
        category=Category.AUTHENTICATION,
        confidence=85,
        related_logs=("401 Unauthorized", "authentication failed", "invalid credentials", "token expired"),
    ),
    _rule(
        "authorization_failure",
        r"\b403 Forbidden\b|\bForbidden\b|\bpermission denied\b|\baccess denied\b"
        r"|\bnot authorized\b|\binsufficient (?:permissions|privileges)\b|\bEACCES\b"
        r"|\bAccessDenied(?:Exception)?\b",
        issue_type="Authorization failure",
        root_cause=(
            "The caller was identified but lacks permission for the requested resource or "
            "operation (missing role, policy or file permission)."
        ),
        suggested_fix=(
            "Identify the principal and the resource named in the denial.",
            "Compare the granted roles or policies with what the operation needs.",
            "For file permission errors, check ownership and mode of the path the process touches.",
        ),
        severity=Severity.MEDIUM,
        category=Category.AUTHORIZATION,
        confidence=80,
        related_logs=("403 Forbidden", "permission denied", "access denied", "EACCES"),
    ),
    _rule(
        "tls_certificate",
        r"\bcertificate (?:verify failed|has expired|expired|is not trusted|unknown)\b"
        r"|\bCERTIFICATE_VERIFY_FAILED\b|\bSSL(?:Error|Exception|HandshakeException)\b"
        r"|\bSSL routines\b|\bhandshake fail(?:ed|ure)\b|\bx509\b|\bself[- ]signed certificate\b"
        r"|\bPKIX path building failed\b",
        issue_type="TLS/certificate error",
        root_cause=(
            "A TLS handshake failed: the peer certificate is expired, untrusted, or does not "
            "match the host, or the two sides share no protocol or cipher."
        ),
        suggested_fix=(
            "Check the certificate chain and expiry date of the endpoint being called.",
            "Make sure the client trust store contains the issuing CA.",
            "Verify the hostname matches the certificate's subject alternative names.",
        ),
        severity=Severity.HIGH,
        category=Category.SECURITY,
        confidence=85,
        related_logs=("CERTIFICATE_VERIFY_FAILED", "SSL handshake", "x509", "certificate expired"),
    ),
    _rule(
        "network_failure",
        r"\bECONNREFUSED\b|\bECONNRESET\b|\bEHOSTUNREACH\b|\bENETUNREACH\b|\bENOTFOUND\b"
        r"|\bEAI_AGAIN\b|\bEPIPE\b|\bconnection refused\b|\bconnection reset\b|\bno route to host\b"
        r"|\bnetwork is unreachable\b|\bname or service not known\b|\bcould not resolve host\b"
        r"|\bDNS (?:lookup|resolution) failed\b|\bbroken pipe\b",
        issue_type="Network connection failure",
        root_cause=(
            "The service could not reach a remote endpoint: the target refused or reset the "
            "connection, the host could not be resolved, or no route exists."
        ),
        suggested_fix=(
            "Confirm the target service is running and listening on the expected port.",
            "Check DNS resolution for the target host from the failing machine.",
            "Review firewall, security-group and service-mesh rules on the path.",
            "Add retries with backoff for transient connection errors.",
        ),
        severity=Severity.HIGH,
        category=Category.NETWORK,
        confidence=80,
        related_logs=("ECONNREFUSED", "ECONNRESET", "ENOTFOUND", "no route to host"),
    ),
    _rule(
        "timeout",
        r"\btimed out\b|\btime-?out\b|\bETIMEDOUT\b|\bdeadline exceeded\b|\bDEADLINE_EXCEEDED\b"
        r"|Timeout(?:Error|Exception)\b",
        issue_type="Operation timeout",
        root_cause=(
            "An operation did not complete within its time limit, usually because a "
            "dependency is slow or overloaded or the timeout is too tight for the workload."
        ),
        suggested_fix=(
            "Identify which call timed out and measure its latency under normal load.",
            "Check the load and health of the dependency being called.",
            "Tune the timeout and add retries with backoff where the call is idempotent.",
        ),
        severity=Severity.MEDIUM,
        category=Category.PERFORMANCE,
        confidence=70,
        related_logs=("timed out", "ETIMEDOUT", "deadline exceeded", "TimeoutError"),
    ),
    _rule(
        "configuration_error",
        r"\bmissing (?:required )?(?:config(?:uration)?|environment variable|env var|setting)\b"
        r"|\binvalid config(?:uration)?\b|\bConfigurationError\b|\bImproperlyConfigured\b"
        r"|\benvironment variable\b.*\bnot set\b|\bENOENT\b|\bno such file or directory\b",
        issue_type="Configuration error",
        root_cause=(
            "The application started with missing or invalid configuration: an unset "
            "environment variable, a malformed setting, or a file it expects is absent."
        ),
        suggested_fix=(
            "Compare the environment and config files of this deployment with a known-good one.",
            "Set the missing variable or fix the invalid value named in the log.",
            "Validate configuration at startup so the service fails fast with a clear message.",
        ),
        severity=Severity.MEDIUM,
        category=Category.CONFIGURATION,
        confidence=70,
        related_logs=("missing configuration", "environment variable not set", "ENOENT"),
    ),
    _rule(
        "runtime_crash",
        r"\bNullPointerException\b|\bNullReferenceException\b|\bnull reference\b|\bNoneType\b"
        r"|\bundefined is not (?:a function|an object)\b|\bCannot read propert(?:y|ies) of (?:undefined|null)\b"
        r"|\b(?:TypeError|AttributeError|ReferenceError|RecursionError|StackOverflowError)\b"
        r"|\bsegmentation fault\b|\bSIGSEGV\b|\bSIGABRT\b|\bcore dumped\b|\bstack overflow\b|\bpanic:",
        issue_type="Application runtime crash",
        root_cause=(
            "The code hit a programming error at runtime (null dereference, type mismatch, "
            "crash signal) on an input or state it does not handle."
        ),
        suggested_fix=(
            "Use the stack trace to locate the failing line and the value that was null or mistyped.",
            "Add a regression test reproducing the input that triggers the crash.",
            "Guard the code path and validate inputs at the boundary.",
        ),
        severity=Severity.HIGH,
        category=Category.RUNTIME,
        confidence=75,
        related_logs=("NullPointerException", "TypeError", "SIGSEGV", "panic:"),
    ),
    _rule(
        "unhandled_exception",
        r"\bTraceback \(most recent call last\)|\bException\b|\b\w+(?:Exception|Error):"
        r"|\bunhandled\b|\buncaught\b|\bstack ?trace\b|^\s+at [\w$.<>]+\(",
        issue_type="Unhandled application exception",
        root_cause=(
            "The application raised an exception that was not handled, aborting the current "
            "request or job."
        ),
        suggested_fix=(
            "Read the exception type and message at the top of the stack trace.",
            "Reproduce with the same input and fix or handle the failing code path.",
            "Make sure exceptions are logged with enough context to diagnose them.",
        ),
        severity=Severity.MEDIUM,
        category=Category.APPLICATION,
        confidence=60,
        related_logs=("Exception", "Traceback", "unhandled", "stack trace"),
    ),
    _rule(
        "performance_degradation",
        r"\bslow (?:query|request|response)\b|\bhigh (?:latency|cpu|load|memory usage)\b"
        r"|\bthrottl(?:ed|ing)\b|\brate[- ]limit(?:ed)?\b|\bToo Many Requests\b"
        r"|\bGC overhead\b|\blong GC pause\b|\blatency\b.*\bexceed",
        issue_type="Performance degradation",
        root_cause=(
            "The service is responding slowly or being throttled, pointing at saturation of "
            "CPU, memory, a dependency or a rate limit."
        ),
        suggested_fix=(
            "Correlate the slow periods with CPU, memory and dependency latency metrics.",
            "Profile the slow endpoint or query and add missing indexes or caching.",
            "Scale out, or back off clients that exceed rate limits.",
        ),
        severity=Severity.MEDIUM,
        category=Category.PERFORMANCE,
        confidence=65,
        related_logs=("slow query", "high latency", "throttled", "Too Many Requests"),
    ),
    _rule(
        "warnings_only",
        r"\bWARN(?:ING)?\b|\bdeprecat(?:ed|ion)\b",
        issue_type="Warnings without errors",
        root_cause=(
            "The log contains warnings but no errors. Nothing is failing yet, but the "
            "warnings may precede an incident."
        ),
        suggested_fix=(
            "Review the warnings and decide which ones need follow-up.",
            "Replace deprecated APIs or settings before they are removed.",
        ),
        severity=Severity.LOW,
        category=Category.APPLICATION,
        confidence=50,
        related_logs=("WARN", "WARNING", "deprecated"),
    ),
)

_GENERIC_ERROR_RE = re.compile(
    r"\berrors?\b|\bfail(?:ed|ure|ures|ing|s)?\b|\bfatal\b|\bcritical\b|\bsevere\b|\bpanic\b",
    _FLAGS,
)

GENERIC_ERROR = Classification(
    issue_type="Unclassified error",
    root_cause=(
        "The log reports errors or failures that do not match a known signature. Manual "
        "review is needed to determine the cause."
    ),
    suggested_fix=[
        "Find the first error in the log; later ones are often consequences of it.",
        "Correlate the error time with deployments, config changes and dependency incidents.",
        "Add more context to the error messages if the cause cannot be determined.",
    ],
    severity=Severity.MEDIUM,
    category=Category.UNKNOWN,
    confidence=30,
    related_logs=["error", "failed", "fatal"],
)

NO_ISSUES = Classification(
    issue_type="No critical issues detected",
    root_cause="The log contains no recognizable error, failure or warning signatures.",
    suggested_fix=[
        "No action required.",
        "If a problem is suspected, submit a wider time range or more verbose logs.",
    ],
    severity=Severity.LOW,
    category=Category.INFORMATIONAL,
    confidence=60,
    related_logs=[],
)


class RuleClassifier:
    """Ordered, first-match-wins classifier over `SignatureRule`s. Never raises."""

    name = "rules"

    def __init__(self, rules: Sequence[SignatureRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def match(self, text: str) -> SignatureRule | None:
        """Return the highest-priority rule matching `text`, if any."""
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def classify_text(self, text: str) -> Classification:
        rule = self.match(text)
        if rule is not None:
            return rule.to_classification()
        if _GENERIC_ERROR_RE.search(text):
            return GENERIC_ERROR.model_copy(deep=True)
        return NO_ISSUES.model_copy(deep=True)

    async def classify(self, text: str) -> Classification:
        return self.classify_text(text)
