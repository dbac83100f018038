"""Core data models for incident analysis.

Attributes are snake_case in Python; the JSON wire shape uses camelCase aliases.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import ErrorCode


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


class Severity(str, Enum):
    """Incident severity, lowest to highest."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Category(str, Enum):
    """Recognized incident categories."""

    NETWORK = "network"
    DATABASE = "database"
    APPLICATION = "application"
    SECURITY = "security"
    PERFORMANCE = "performance"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    CONFIGURATION = "configuration"
    RESOURCE = "resource"
    RUNTIME = "runtime"
    INFORMATIONAL = "informational"
    INFRASTRUCTURE = "infrastructure"
    UNKNOWN = "unknown"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Classification(_CamelModel):
    """The seven core fields every classifier must produce."""

    issue_type: str = Field(min_length=1, description="Short label for the issue.")
    root_cause: str = Field(min_length=1, description="Free-text explanation of the cause.")
    suggested_fix: list[str] = Field(min_length=1, description="Ordered remediation steps.")
    severity: Severity = Field(description="Low | Medium | High | Critical.")
    category: str = Field(default=Category.UNKNOWN.value, description="Incident category.")
    confidence: int = Field(ge=0, le=100, description="0..100 confidence.")
    related_logs: list[str] = Field(
        default_factory=list, description="Signature keywords or patterns."
    )

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            wanted = value.strip().lower()
            for sev in Severity:
                if sev.value.lower() == wanted:
                    return sev
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        if isinstance(value, Category):
            return value.value
        if isinstance(value, str):
            return value.strip().lower() or Category.UNKNOWN.value
        return value

    @field_validator("suggested_fix", "related_logs")
    @classmethod
    def _drop_blank_items(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]

    @model_validator(mode="after")
    def _require_fix_steps(self) -> Classification:
        # Blank entries are dropped above, so re-check the non-empty constraint.
        if not self.suggested_fix:
            raise ValueError("suggestedFix must contain at least one step")
        return self


class IncidentRecord(Classification):
    """Canonical analysis output returned to callers and stored in the cache."""

    log_hash: str
    analyzed_at: datetime
    processing_time_ms: int = Field(ge=0)


class FallbackInfo(_CamelModel):
    """Why a degraded record was returned instead of the AI answer."""

    kind: ErrorCode
    message: str
    missing: list[str] = Field(default_factory=list)


class CacheEntry(_CamelModel):
    """Persisted analysis result, addressed by the fingerprint of the redacted log."""

    hash: str
    record: IncidentRecord
    cached_at: AwareDatetime
    expires_at: AwareDatetime
    model: str | None = None  # classifier that produced the record
    fallback: FallbackInfo | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class AnalysisRequest(_CamelModel):
    log_text: str
    force: bool = False


class AnalysisMetadata(_CamelModel):
    log_size: int = 0
    redacted_log_size: int = 0
    cache_hit: bool = False
    model: str | None = None


class ErrorInfo(_CamelModel):
    message: str
    code: ErrorCode


class AnalysisResponse(_CamelModel):
    """Result handed to the transport layer."""

    success: bool
    analysis: IncidentRecord | None = None
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)
    error: ErrorInfo | None = None
    cached: bool = False
    fallback: bool = False
    fallback_reason: FallbackInfo | None = None

    @model_validator(mode="after")
    def _analysis_or_error(self) -> AnalysisResponse:
        if self.analysis is None and self.error is None:
            raise ValueError("AnalysisResponse needs either analysis or error")
        return self

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable camelCase dict (absent fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
