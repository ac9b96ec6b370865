"""Cache store implementations for Apple's signing key set.

This module provides implementations of the CacheStore protocol. The key set
is cached as a single entry under a fixed key, with a fixed TTL, and replaced
wholesale on refresh.

Implementations:
- InMemoryCache: In-process caching (good for dev/single-instance)
- RedisCache: Distributed caching via Redis (good for multi-instance production)

Security Note:
    Caching keys introduces a TTL window where a rotated key may not yet be
    known. Apple publishes new keys well before signing with them, so a short
    TTL (300 seconds) is enough. There is no stale fallback: an expired entry
    is never served.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any

from .models import SigningKeySet


@dataclass(slots=True)
class _CacheItem:
    """Internal cache entry with TTL tracking."""

    value: SigningKeySet
    expires_at: float


class InMemoryCache:
    """In-process memory cache for the signing key set.

    Values are kept as the parsed SigningKeySet objects, so repeated reads
    within the TTL return the identical object. Expired entries are lazily
    removed on access.

    Thread Safety:
        Reads and writes go through a lock. Concurrent refreshes are
        last-write-wins; an entry is always a complete key set.

    Example:
        ```python
        cache = InMemoryCache()
        cache.set("apple_signin:jwks", key_set, ttl_seconds=300)
        cache.get("apple_signin:jwks")  # SigningKeySet or None
        ```
    """

    def __init__(self) -> None:
        self._store: dict[str, _CacheItem] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> SigningKeySet | None:
        """Return the cached key set, or None if missing or expired."""
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None

            if time.time() >= item.expires_at:
                # Lazy removal of expired entry
                self._store.pop(key, None)
                return None

            return item.value

    def set(self, key: str, value: SigningKeySet, ttl_seconds: int) -> None:
        """Cache a key set with TTL, replacing any previous entry.

        Raises:
            ValueError: If ttl_seconds is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        item = _CacheItem(value=value, expires_at=time.time() + ttl_seconds)
        with self._lock:
            self._store[key] = item

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class RedisCache:
    """Redis-backed distributed cache for the signing key set.

    The JWKS document is stored as JSON and re-parsed on read, using Redis's
    native TTL for expiration. All processes sharing the Redis instance share
    one key set entry.

    Dependencies:
        Requires redis package: pip install redis

    Example:
        ```python
        import redis

        client = redis.Redis(host="localhost", port=6379)
        cache = RedisCache(redis_client=client)
        ```
    """

    def __init__(self, redis_client: Any) -> None:
        """Initialize Redis cache.

        Args:
            redis_client: Redis client instance. Must support get(), setex()
                and delete(). Typed as Any to avoid a hard dependency on redis
                package types (redis-py, fakeredis, etc. all work).
        """
        self._client = redis_client

    def get(self, key: str) -> SigningKeySet | None:
        """Retrieve the cached key set.

        Raises:
            RuntimeError: If the cached data cannot be deserialized.
        """
        data = self._client.get(key)
        if data is None:
            return None

        try:
            return SigningKeySet.from_document(json.loads(data))
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            raise RuntimeError("Failed to deserialize cached key set") from e

    def set(self, key: str, value: SigningKeySet, ttl_seconds: int) -> None:
        """Cache the key set's JWKS document with TTL.

        Raises:
            RuntimeError: If the Redis operation fails.
        """
        try:
            self._client.setex(key, ttl_seconds, json.dumps(dict(value.document)))
        except Exception as e:
            raise RuntimeError("Failed to cache key set in Redis") from e

    def delete(self, key: str) -> None:
        self._client.delete(key)
