"""Protocol definitions for the Sign in with Apple client.

This module defines structural interfaces using Protocol (PEP 544) for the
collaborators the core calls into:
- HTTP transport (a ``requests.Session`` satisfies it)
- Key-set caching
- Key-set resolution
- Identity token verification

Using protocols keeps the core testable with small fakes and lets applications
plug in their own transport or cache without inheriting from anything.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .models import IdentityClaims, SigningKeySet

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Decoded identity token payload as an immutable mapping."""

type SessionStore = MutableMapping[str, Any]
"""Per-user session storage (``flask.session`` or any dict-like object)."""


# ============================================================================
# Core Protocols
# ============================================================================


class HttpResponse(Protocol):
    """The subset of ``requests.Response`` the client reads."""

    status_code: int
    text: str

    @property
    def ok(self) -> bool: ...

    def json(self) -> Any: ...

    def raise_for_status(self) -> None: ...


class HttpSession(Protocol):
    """Outbound HTTP transport.

    ``requests.Session`` is the default implementation. Timeouts are passed on
    every call; the transport owns connection pooling and retries.
    """

    def get(self, url: str, **kwargs: Any) -> HttpResponse: ...

    def post(self, url: str, **kwargs: Any) -> HttpResponse: ...


class CacheStore(Protocol):
    """Protocol for caching Apple's signing key set.

    The whole key set lives under a single cache key and is replaced wholesale
    on refresh; stores never merge entries.
    """

    def get(self, key: str) -> SigningKeySet | None:
        """Return the cached key set, or None when missing or expired."""
        ...

    def set(self, key: str, value: SigningKeySet, ttl_seconds: int) -> None:
        """Store the key set, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Drop the cached key set."""
        ...


class KeySetProvider(Protocol):
    """Protocol for anything that can hand out the current signing key set."""

    def get_key_set(self) -> SigningKeySet:
        """Return the current key set.

        Raises:
            KeyFetchError: If the key set cannot be retrieved.
        """
        ...


class TokenVerifier(Protocol):
    """Protocol for identity token verification."""

    def verify(self, token: str) -> IdentityClaims:
        """Verify an identity token and return its typed claims.

        Raises:
            InvalidTokenError: Token malformed, unknown kid, bad signature,
                wrong issuer/audience, or outside its validity window.
            KeyFetchError: Signing keys could not be retrieved.
        """
        ...
