"""Content fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
import re

_HEX_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")


def fingerprint(redacted_text: str) -> str:
    """SHA-256 hex digest of the redacted text.

    Callers must redact first: hashing raw text would fold timestamps and
    other volatile values into the key and defeat the cache.
    """
    data = redacted_text.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(data).hexdigest()


def is_fingerprint(value: str) -> bool:
    """True if `value` has the shape of a fingerprint (64 lowercase hex chars)."""
    return bool(_HEX_DIGEST_RE.match(value))
