"""
Gateway caching package.

Provides the key/value storage capability shared by credentials and the
response cache, plus the TTL cache that serves stale-but-available reads
when the network fails. The cache is best-effort, never a source of truth.
"""

from .storage import KeyValueStore, InMemoryStore, RedisStore
from .response_cache import CacheEntry, ResponseCache, CACHE_KEY_PREFIX

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
    "CacheEntry",
    "ResponseCache",
    "CACHE_KEY_PREFIX",
]
