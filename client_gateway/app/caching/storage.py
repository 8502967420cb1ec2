"""
Key/value storage backends for credentials and cached responses.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import ResponseError

from shared.errors import StorageQuotaExceeded
from shared.logging import get_logger


class KeyValueStore(ABC):
    """Async string key/value store, the local persistence capability."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, raising StorageQuotaExceeded when it does not fit."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with ``prefix``."""

    async def close(self) -> None:
        return None


class InMemoryStore(KeyValueStore):
    """Dict-backed store with an optional byte quota."""

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes
        self._data: Dict[str, str] = {}

    def _size(self, data: Dict[str, str]) -> int:
        return sum(len(k) + len(v) for k, v in data.items())

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            candidate = dict(self._data)
            candidate[key] = value
            used = self._size(candidate)
            if used > self.max_bytes:
                raise StorageQuotaExceeded(
                    details={"key": key, "required_bytes": used, "max_bytes": self.max_bytes}
                )
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def snapshot(self) -> Dict[str, str]:
        """Copy of the raw contents, for diagnostics."""
        return dict(self._data)


class RedisStore(KeyValueStore):
    """Redis-backed store; keys are namespaced to share a database."""

    def __init__(self, redis_url: str, namespace: str = "creator-gateway"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("gateway.redis_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        client = await self._get_redis()
        return await client.get(self._make_key(key))

    async def set(self, key: str, value: str) -> None:
        client = await self._get_redis()
        try:
            await client.set(self._make_key(key), value)
        except ResponseError as exc:
            if str(exc).startswith("OOM"):
                self.logger.warning("Redis rejected write", key=key, error=str(exc))
                raise StorageQuotaExceeded(details={"key": key, "error": str(exc)}) from exc
            raise

    async def delete(self, key: str) -> None:
        client = await self._get_redis()
        await client.delete(self._make_key(key))

    async def keys(self, prefix: str = "") -> List[str]:
        client = await self._get_redis()
        strip = len(self.namespace) + 1
        found = [key[strip:] async for key in client.scan_iter(match=f"{self._make_key(prefix)}*")]
        # MATCH treats ? and [ as glob syntax
        return [key for key in found if key.startswith(prefix)]

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

