"""Filesystem-backed result cache keyed by content fingerprint.

One JSON file per fingerprint. Expiry is checked lazily on read; expired
files are left in place and overwritten by the next successful write.
Writes go through a temp file and an atomic rename, so concurrent readers
never see partial entries and concurrent writers to one key are
last-writer-wins.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .config import DEFAULT_CACHE_TTL
from .errors import ErrorCode
from .fingerprint import is_fingerprint
from .models import CacheEntry, FallbackInfo, IncidentRecord, utcnow

logger = logging.getLogger(__name__)
_IO_FAILURE = ErrorCode.CACHE_IO_FAILURE.value


class ResultCache:
    """Best-effort key/value store for analysis results."""

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self._clock = clock

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    async def get(self, key: str) -> CacheEntry | None:
        """Return a live entry for `key`, or None on miss, expiry or any error."""
        if not is_fingerprint(key):
            logger.debug("Ignoring malformed cache key %r", key)
            return None

        path = self.path_for(key)
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("%s: cannot read cache entry %s: %s", _IO_FAILURE, key, e)
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "%s: corrupt cache entry %s (%s errors)",
                _IO_FAILURE,
                key,
                e.error_count(),
            )
            return None

        if entry.hash != key:
            logger.warning("%s: cache entry %s is stored under the wrong key", _IO_FAILURE, key)
            return None

        if entry.is_expired(self._clock()):
            logger.debug("Cache entry %s expired at %s", key, entry.expires_at.isoformat())
            return None

        return entry

    async def put(
        self,
        key: str,
        record: IncidentRecord,
        *,
        model: str | None = None,
        fallback: FallbackInfo | None = None,
    ) -> CacheEntry | None:
        """Persist `record` under `key`. Failures are logged and swallowed."""
        if not is_fingerprint(key):
            logger.warning(
                "%s: refusing to cache under malformed key %r", _IO_FAILURE, key
            )
            return None

        now = self._clock()
        entry = CacheEntry(
            hash=key,
            record=record,
            cached_at=now,
            expires_at=now + self.ttl,
            model=model,
            fallback=fallback,
        )
        payload = entry.model_dump_json(by_alias=True)

        path = self.path_for(key)
        tmp = path.with_name(f".{key}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)
            async with aiofiles.open(tmp, mode="w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp, path)
        except OSError as e:
            logger.warning("%s: failed to save cache entry %s: %s", _IO_FAILURE, key, e)
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp)
            return None

        logger.debug("Cached analysis %s until %s", key, entry.expires_at.isoformat())
        return entry
