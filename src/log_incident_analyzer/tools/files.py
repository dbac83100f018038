"""Log file access for the tool and resource layers.

The analysis core only ever sees text; locating, validating and reading
files happens here.
"""

from __future__ import annotations

import gzip
import os
from pathlib import Path

from log_incident_analyzer.core.errors import TooLargeError

ALLOWED_FILE_SUFFIXES = {".log", ".txt", ".json"}
BASE_DIR_ENV = "LOG_ANALYZER_BASE_DIR"
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "replace"


def base_dir() -> Path:
    """Return the resolved base directory for file access."""
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


def _allowed_suffix(path: Path) -> str:
    """Return the effective suffix for allowlist checks."""
    suffix = path.suffix.lower()
    if suffix == ".gz":
        suffix = path.with_suffix("").suffix.lower()
    return suffix


def ensure_allowed_suffix(path: Path) -> None:
    """Validate the file suffix against the allowlist."""
    if _allowed_suffix(path) not in ALLOWED_FILE_SUFFIXES:
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        raise ValueError(f"File type not allowed. Allowed: {allowed} (optionally .gz).")


def resolve_log_path(path: str) -> Path:
    """Resolve and validate a log file path under the base directory."""
    resolved = safe_resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    ensure_allowed_suffix(resolved)
    return resolved


def read_log_text(path: Path, *, max_bytes: int) -> str:
    """Read at most `max_bytes` of (optionally gzipped) log text.

    Raises TooLargeError instead of loading an oversized file into memory.
    """
    opener = gzip.open if path.suffix.lower() == ".gz" else open
    with opener(path, mode="rb") as f:
        data = f.read(max_bytes + 1)
    if len(data) > max_bytes:
        size = path.stat().st_size if opener is open else len(data)
        raise TooLargeError(size, max_bytes)
    return data.decode(TEXT_ENCODING, errors=TEXT_ERRORS)
