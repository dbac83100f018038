"""Error taxonomy for the analysis pipeline.

Input errors are returned to the caller as client errors. Classifier
failures are absorbed by the orchestrator and trigger the fallback path.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes exposed in `ErrorInfo.code` and fallback metadata."""

    EMPTY_INPUT = "EMPTY_INPUT"
    TOO_LARGE = "TOO_LARGE"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    CACHE_IO_FAILURE = "CACHE_IO_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AnalysisError(Exception):
    """Base class for pipeline errors that carry an error code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(AnalysisError):
    """The submitted log text was rejected before any work was done."""


class EmptyInputError(InputError):
    code = ErrorCode.EMPTY_INPUT

    def __init__(self, message: str = "Log content is empty or invalid") -> None:
        super().__init__(message)


class TooLargeError(InputError):
    code = ErrorCode.TOO_LARGE

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Log exceeds maximum size of {limit} bytes (got {size} bytes)")
        self.size = size
        self.limit = limit


_FAILURE_KINDS = (
    ErrorCode.INVALID_RESPONSE,
    ErrorCode.SCHEMA_VIOLATION,
    ErrorCode.TRANSPORT_FAILURE,
)


class AnalysisFailure(AnalysisError):
    """The external classifier did not produce a usable answer."""

    def __init__(
        self,
        kind: ErrorCode,
        message: str,
        *,
        missing: Iterable[str] = (),
    ) -> None:
        if kind not in _FAILURE_KINDS:
            raise ValueError(f"Unsupported failure kind: {kind}")
        super().__init__(message)
        self.kind = kind
        self.code = kind
        self.missing = tuple(missing)

    @classmethod
    def invalid_response(cls, message: str) -> AnalysisFailure:
        return cls(ErrorCode.INVALID_RESPONSE, message)

    @classmethod
    def schema_violation(cls, message: str, *, missing: Iterable[str] = ()) -> AnalysisFailure:
        return cls(ErrorCode.SCHEMA_VIOLATION, message, missing=missing)

    @classmethod
    def transport(cls, message: str) -> AnalysisFailure:
        return cls(ErrorCode.TRANSPORT_FAILURE, message)


__all__ = [
    "AnalysisError",
    "AnalysisFailure",
    "EmptyInputError",
    "ErrorCode",
    "InputError",
    "TooLargeError",
]
