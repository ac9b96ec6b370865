"""
Apple JWKS key-set cache.

Resolves Apple's public signing keys from ``https://appleid.apple.com/auth/keys``
and keeps them in a CacheStore for a fixed TTL.

Resolution Strategy
-------------------
1) Cache lookup (fast path)
    - If a key set younger than the TTL is cached, return it.

2) Fetch
    - GET the JWKS document, parse it into a SigningKeySet.
    - Store it under a single fixed cache key, replacing the previous set.

3) Failure
    - Network errors, non-2xx answers, malformed JSON and documents without
      usable keys raise KeyFetchError. A stale key set is never used.
    - A cache store that fails to read or write is logged and bypassed.

Notes
-----
- Concurrent refreshes may fetch twice; the last write wins. Entries are
  never partially updated, so readers always see a complete key set.
- The cache does not retry; transient failures surface to the caller.
"""

from __future__ import annotations

import logging

import requests

from .cache_stores import InMemoryCache
from .config import DEFAULT_HTTP_TIMEOUT, JWKS_CACHE_KEY, JWKS_CACHE_TTL, KEYS_URL
from .errors import KeyFetchError
from .models import SigningKeySet
from .protocols import CacheStore, HttpSession, KeySetProvider

logger = logging.getLogger(__name__)


class KeySetCache(KeySetProvider):
    """
    Time-bounded cache of Apple's signing key set.

    Parameters
    ----------
    cache : CacheStore
        Backing store. Defaults to a process-local InMemoryCache.

    http : HttpSession
        Transport used for the JWKS request. Defaults to a new
        ``requests.Session``.

    keys_url : str
        JWKS endpoint.

    ttl_seconds : int
        Lifetime of a fetched key set.

    timeout : float
        Timeout in seconds for the JWKS request.

    Example
    -------
    key_sets = KeySetCache()
    key = key_sets.get_key_set().get(kid)
    """

    def __init__(
        self,
        cache: CacheStore | None = None,
        http: HttpSession | None = None,
        keys_url: str = KEYS_URL,
        ttl_seconds: int = JWKS_CACHE_TTL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        cache_key: str = JWKS_CACHE_KEY,
    ) -> None:
        self._cache = cache if cache is not None else InMemoryCache()
        self._http = http if http is not None else requests.Session()
        self._url = keys_url
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._cache_key = cache_key

    def get_key_set(self) -> SigningKeySet:
        """
        Return the current key set, fetching it when the cache has none.

        A store that cannot be read counts as a miss, and a store that cannot
        be written still returns the freshly fetched set. Only the fetch itself
        raises KeyFetchError.
        """
        try:
            cached = self._cache.get(self._cache_key)
        except Exception as e:
            logger.warning("Ignoring unreadable cached key set: %s", e)
            cached = None
        if cached is not None:
            return cached

        key_set = self._fetch()
        try:
            self._cache.set(self._cache_key, key_set, ttl_seconds=self._ttl)
        except Exception as e:
            logger.warning("Could not cache Apple signing keys: %s", e)
        return key_set

    def invalidate(self) -> None:
        """Drop the cached key set so the next call fetches a fresh one."""
        self._cache.delete(self._cache_key)

    def _fetch(self) -> SigningKeySet:
        logger.info("Fetching Apple signing keys from %s", self._url)
        try:
            response = self._http.get(self._url, timeout=self._timeout)
            response.raise_for_status()
            document = response.json()
        except requests.RequestException as e:
            raise KeyFetchError(f"Unable to fetch signing keys: {e}") from e
        except ValueError as e:
            raise KeyFetchError("Signing key response is not valid JSON") from e

        if not isinstance(document, dict):
            raise KeyFetchError("Signing key response is not a JWKS document")

        try:
            key_set = SigningKeySet.from_document(document)
        except ValueError as e:
            raise KeyFetchError(str(e)) from e

        logger.debug("Loaded %d Apple signing keys: %s", len(key_set), sorted(key_set.keys))
        return key_set
