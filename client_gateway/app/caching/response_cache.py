"""
TTL response cache used as a fallback for failed reads.
"""

import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from shared.errors import StorageQuotaExceeded
from shared.logging import get_logger
from .storage import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_KEY_PREFIX = "api_cache_"
DEFAULT_CACHE_TTL = 300


class CacheEntry(BaseModel):
    """A stored successful read response."""
    payload: Any = None
    stored_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class ResponseCache:
    """Best-effort response cache keyed by endpoint.

    Entries are written for successful reads and consulted only when the
    same read fails without a response. A write that overflows the store
    triggers a sweep of expired entries and is dropped.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = DEFAULT_CACHE_TTL,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.backend = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("gateway.response_cache")

    def _make_key(self, key: str) -> str:
        return f"{CACHE_KEY_PREFIX}{key}"

    def _record(self, event: str):
        if self.metrics:
            self.metrics.increment_counter("gateway_cache_events_total", event=event)

    async def store(self, key: str, payload: Any) -> bool:
        """Store ``payload`` under ``key``, overwriting any previous entry."""
        now = self.clock()
        entry = CacheEntry(payload=payload, stored_at=now, expires_at=now + self.ttl_seconds)

        try:
            await self.backend.set(self._make_key(key), entry.model_dump_json())
        except StorageQuotaExceeded as exc:
            self.logger.warning("Cache storage failed", key=key, error=exc.message)
            self._record("store_failed")
            await self.sweep_expired()
            return False

        self._record("store")
        return True

    async def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if present and unexpired."""
        raw = await self.backend.get(self._make_key(key))
        if raw is None:
            self._record("miss")
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            self.logger.warning("Discarding unreadable cache entry", key=key)
            await self.backend.delete(self._make_key(key))
            self._record("miss")
            return None

        if not entry.is_fresh(self.clock()):
            self._record("miss")
            return None

        self._record("hit")
        return entry

    async def sweep_expired(self) -> int:
        """Delete expired and unreadable entries."""
        now = self.clock()
        removed = 0

        for full_key in await self.backend.keys(CACHE_KEY_PREFIX):
            raw = await self.backend.get(full_key)
            if raw is None:
                continue
            try:
                expired = not CacheEntry.model_validate_json(raw).is_fresh(now)
            except ValidationError:
                expired = True
            if expired:
                await self.backend.delete(full_key)
                removed += 1

        if removed:
            self.logger.info("Swept expired cache entries", removed=removed)
            if self.metrics:
                self.metrics.increment_counter("gateway_cache_events_total", event="swept")
        return removed

    async def clear(self) -> int:
        """Delete every cache entry."""
        keys = await self.backend.keys(CACHE_KEY_PREFIX)
        for full_key in keys:
            await self.backend.delete(full_key)
        return len(keys)

    async def stats(self) -> Dict[str, Any]:
        """Entry count and approximate size of the cache."""
        keys = await self.backend.keys(CACHE_KEY_PREFIX)
        total_size = 0
        for full_key in keys:
            raw = await self.backend.get(full_key)
            total_size += len(raw or "")

        return {
            "entries": len(keys),
            "size_kb": round(total_size / 1024, 2),
        }
