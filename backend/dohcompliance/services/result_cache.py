"""Result cache — memoizes ValidationResults by a fingerprint of their inputs.

The fingerprint covers form data, form type, validation type, scope and the
catalog version, so a catalog bump can never serve a stale result. Entries
are stored as the same camelCase JSON the API returns and re-validated on the
way out: a hit and a miss always have the same shape.
"""

import hashlib
import json
import time
from typing import Any, Optional, Protocol

import structlog

from dohcompliance.validators.models import ValidationResult

logger = structlog.get_logger()

CACHE_PREFIX = "dohcompliance:cache:"


def fingerprint(
    form_data: Any,
    form_type: str,
    validation_type: str,
    validation_scope: str,
    standards_version: str,
) -> str:
    """Stable content hash of everything that determines a result."""
    payload = json.dumps(
        {
            "formData": form_data,
            "formType": form_type,
            "validationType": validation_type,
            "validationScope": validation_scope,
            "standardsVersion": standards_version,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{standards_version}:{form_type}:{validation_type}:{validation_scope}:{digest}"


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    async def delete_prefix(self, prefix: str) -> int: ...
    async def clear_expired(self) -> int: ...
    async def size(self) -> int: ...


class InMemoryCacheBackend:
    """Process-local backend with per-entry expiry."""

    def __init__(self):
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    async def clear_expired(self) -> int:
        now = time.monotonic()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def size(self) -> int:
        return len(self._entries)


class RedisCacheBackend:
    """Redis-backed cache. Expiry is handled by Redis TTLs."""

    def __init__(self, redis_client):
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.redis.setex(key, ttl_seconds, value)

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for key in self.redis.scan_iter(match=f"{prefix}*"):
            deleted += await self.redis.delete(key)
        return deleted

    async def clear_expired(self) -> int:
        # Redis evicts expired keys on its own
        return 0

    async def size(self) -> int:
        count = 0
        async for _ in self.redis.scan_iter(match=f"{CACHE_PREFIX}*"):
            count += 1
        return count


class ResultCache:
    """ValidationResult cache with hit/miss statistics."""

    def __init__(self, backend: Optional[CacheBackend] = None, ttl_hours: int = 24, enabled: bool = True):
        self.backend = backend or InMemoryCacheBackend()
        self.ttl_seconds = int(ttl_hours * 3600)
        self.enabled = enabled
        self.hits = 0
        self.misses = 0

    def _key(self, cache_key: str) -> str:
        return f"{CACHE_PREFIX}{cache_key}"

    async def get(self, cache_key: str) -> Optional[ValidationResult]:
        """Return the cached result, or None on a miss or an unreadable entry."""
        if not self.enabled:
            return None
        try:
            raw = await self.backend.get(self._key(cache_key))
        except Exception as e:
            logger.warning("cache_read_failed", error=str(e))
            self.misses += 1
            return None

        if raw is None:
            self.misses += 1
            return None

        try:
            result = ValidationResult.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("cache_entry_corrupt", cache_key=cache_key, error=str(e))
            self.misses += 1
            return None

        self.hits += 1
        logger.debug("cache_hit", cache_key=cache_key)
        return result

    async def put(self, cache_key: str, result: ValidationResult) -> None:
        if not self.enabled:
            return
        try:
            await self.backend.set(
                self._key(cache_key),
                json.dumps(result.to_json_dict()),
                self.ttl_seconds,
            )
        except Exception as e:
            # A cache write failure must not fail the validation
            logger.warning("cache_write_failed", cache_key=cache_key, error=str(e))

    async def invalidate_version(self, standards_version: str) -> int:
        """Drop every entry computed against `standards_version`."""
        removed = await self.backend.delete_prefix(self._key(f"{standards_version}:"))
        logger.info("cache_invalidated", standards_version=standards_version, removed=removed)
        return removed

    async def clear_expired(self) -> int:
        removed = await self.backend.clear_expired()
        logger.info("cache_expired_cleared", removed=removed)
        return removed

    async def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "enabled": self.enabled,
            "hit_rate": round(self.hits / lookups * 100, 1) if lookups else 0.0,
            "total_hits": self.hits,
            "total_misses": self.misses,
            "cache_size": await self.backend.size(),
        }
