"""Value objects passed between the components of the login flow.

All of them are frozen dataclasses: a key set is replaced wholesale, claims are
read-only once verified, and a NormalizedIdentity is built once per successful
login and handed to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from jwt import PyJWK, PyJWKSet
from jwt.exceptions import PyJWKError, PyJWKSetError


def _frozen(data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


def _as_bool(value: Any) -> bool | None:
    # Apple sends some booleans as the strings "true" / "false".
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class SigningKeySet:
    """Apple's public signing keys, indexed by key id.

    Attributes:
        keys: Read-only mapping of ``kid`` to PyJWK.
        document: The JWKS document the keys were parsed from. Kept so that
            distributed cache stores can serialize the set.
    """

    keys: Mapping[str, PyJWK]
    document: Mapping[str, Any]

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> SigningKeySet:
        """Parse a JWKS document.

        Raises:
            ValueError: If the document is not a JWKS or holds no usable keys.
        """
        try:
            jwk_set = PyJWKSet.from_dict(dict(document))
        except (PyJWKSetError, PyJWKError, TypeError, KeyError) as e:
            raise ValueError(f"Invalid JWKS document: {e}") from e

        keys = {jwk.key_id: jwk for jwk in jwk_set.keys if jwk.key_id}
        if not keys:
            raise ValueError("JWKS document contains no keys with a kid")
        return cls(keys=MappingProxyType(keys), document=_frozen(document))

    def get(self, kid: str) -> PyJWK | None:
        return self.keys.get(kid)

    def __contains__(self, kid: object) -> bool:
        return kid in self.keys

    def __len__(self) -> int:
        return len(self.keys)


@dataclass(frozen=True, slots=True)
class IdentityClaims:
    """Typed view over a verified identity token payload.

    Named fields cover the claims Apple documents; ``raw`` keeps the complete
    payload so new claims stay reachable without a code change.
    """

    sub: str | None
    iss: str | None
    aud: str | list[str] | None
    iat: int | None
    exp: int | None
    nbf: int | None = None
    nonce: str | None = None
    nonce_supported: bool | None = None
    email: str | None = None
    email_verified: bool | None = None
    is_private_email: bool | None = None
    auth_time: int | None = None
    real_user_status: int | None = None
    raw: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> IdentityClaims:
        return cls(
            sub=payload.get("sub"),
            iss=payload.get("iss"),
            aud=payload.get("aud"),
            iat=_as_int(payload.get("iat")),
            exp=_as_int(payload.get("exp")),
            nbf=_as_int(payload.get("nbf")),
            nonce=payload.get("nonce"),
            nonce_supported=_as_bool(payload.get("nonce_supported")),
            email=payload.get("email"),
            email_verified=_as_bool(payload.get("email_verified")),
            is_private_email=_as_bool(payload.get("is_private_email")),
            auth_time=_as_int(payload.get("auth_time")),
            real_user_status=_as_int(payload.get("real_user_status")),
            raw=_frozen(payload),
        )


@dataclass(frozen=True, slots=True)
class TokenResponse:
    """Parsed body of a ``/auth/token`` response.

    A refresh response carries no ``refresh_token``; callers keep the one they
    already hold.
    """

    id_token: str | None
    access_token: str | None
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None
    raw: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))

    @classmethod
    def from_mapping(cls, body: Mapping[str, Any]) -> TokenResponse:
        return cls(
            id_token=body.get("id_token"),
            access_token=body.get("access_token"),
            refresh_token=body.get("refresh_token"),
            expires_in=_as_int(body.get("expires_in")),
            token_type=body.get("token_type"),
            raw=_frozen(body),
        )


@dataclass(frozen=True, slots=True)
class CallbackParams:
    """Parameters Apple posts back to the redirect URI (``response_mode=form_post``)."""

    code: str | None = None
    state: str | None = None
    user: Any = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class NormalizedIdentity:
    """The user identity produced by a successful login.

    Attributes:
        id: Apple's stable user identifier (``sub``).
        name: Full name, only available on the user's first authorization.
        email: Email (possibly a private relay address).
        raw: All verified claims, plus the ``name`` object from the user payload.
        token: Access token from the token endpoint.
        refresh_token: Refresh token, when Apple issued one.
        expires_in: Access token lifetime in seconds.
        id_token: The verified identity token.
        token_response: The full token endpoint body.
    """

    id: str
    name: str | None = None
    email: str | None = None
    raw: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))
    token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    token_response: Mapping[str, Any] = field(default_factory=lambda: _frozen(None))
