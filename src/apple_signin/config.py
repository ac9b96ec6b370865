"""Configuration for the Sign in with Apple client.

Apple's endpoints are fixed; only the relying party's registration details
vary per deployment. Configuration can be built directly, from a mapping such
as ``flask.Flask.config``, or from environment variables (a ``.env`` file is
loaded with python-dotenv).
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from dotenv import load_dotenv

APPLE_ISSUER: Final[str] = "https://appleid.apple.com"
"""Issuer of Apple identity tokens, and base URL of every Apple endpoint."""

AUTHORIZE_URL: Final[str] = f"{APPLE_ISSUER}/auth/authorize"
TOKEN_URL: Final[str] = f"{APPLE_ISSUER}/auth/token"
REVOKE_URL: Final[str] = f"{APPLE_ISSUER}/auth/revoke"
KEYS_URL: Final[str] = f"{APPLE_ISSUER}/auth/keys"

JWKS_CACHE_KEY: Final[str] = "apple_signin:jwks"
JWKS_CACHE_TTL: Final[int] = 300
"""Seconds a fetched key set stays valid before it is fetched again."""

DEFAULT_SCOPES: Final[tuple[str, ...]] = ("name", "email")
DEFAULT_LEEWAY: Final[int] = 10
DEFAULT_HTTP_TIMEOUT: Final[float] = 10.0

_USE_CLIENT_ID: Final = object()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_scopes(value: Any) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_SCOPES
    if isinstance(value, str):
        return tuple(value.replace(",", " ").split())
    return tuple(value)


@dataclass(frozen=True, slots=True)
class AppleSignInConfig:
    """Relying party settings.

    Attributes:
        client_id: Services ID (web) or bundle id (native) registered with Apple.
        redirect_uri: Callback URL registered for the Services ID.
        client_secret: A pre-minted client secret JWT. Leave empty to have one
            minted from ``team_id``/``key_id``/``private_key``.
        team_id: Apple developer team id (``iss`` of the client secret).
        key_id: Id of the Sign in with Apple private key (``kid``).
        private_key: PEM encoded ES256 private key.
        scopes: Requested scopes, joined with spaces in the authorization URL.
        use_state: Send and check state/nonce. Disable only for stateless APIs.
        audience: Expected ``aud`` of identity tokens. Defaults to client_id;
            None disables the audience check.
        leeway: Clock skew tolerance in seconds for exp/iat/nbf.
        http_timeout: Timeout in seconds for every outbound request.
        extra_params: Additional authorization URL parameters.

    Raises:
        ValueError: If required values are missing or no client secret source
            is configured.
    """

    client_id: str
    redirect_uri: str
    client_secret: str | None = None
    team_id: str | None = None
    key_id: str | None = None
    private_key: str | None = None
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    use_state: bool = True
    audience: Any = _USE_CLIENT_ID
    leeway: int = DEFAULT_LEEWAY
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    extra_params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ValueError("client_id is required")
        if not self.redirect_uri:
            raise ValueError("redirect_uri is required")
        if not self.client_secret and not self.can_mint_client_secret:
            raise ValueError(
                "Either client_secret or team_id, key_id and private_key are required"
            )
        if self.leeway < 0:
            raise ValueError(f"leeway must not be negative, got {self.leeway}")
        if self.audience is _USE_CLIENT_ID:
            object.__setattr__(self, "audience", self.client_id)

    @property
    def can_mint_client_secret(self) -> bool:
        return bool(self.team_id and self.key_id and self.private_key)

    @classmethod
    def from_mapping(
        cls, config: Mapping[str, Any], prefix: str = "APPLE_"
    ) -> AppleSignInConfig:
        """Build a config from ``PREFIX_*`` keys, e.g. ``APPLE_CLIENT_ID``."""

        def get(name: str, default: Any = None) -> Any:
            value = config.get(f"{prefix}{name}", default)
            return default if value == "" else value

        kwargs: dict[str, Any] = {
            "client_id": get("CLIENT_ID"),
            "redirect_uri": get("REDIRECT_URI"),
            "client_secret": get("CLIENT_SECRET"),
            "team_id": get("TEAM_ID"),
            "key_id": get("KEY_ID"),
            "private_key": get("PRIVATE_KEY"),
            "scopes": _as_scopes(get("SCOPES")),
            "use_state": _as_bool(get("USE_STATE", True)),
            "leeway": int(get("LEEWAY", DEFAULT_LEEWAY)),
            "http_timeout": float(get("HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)),
        }
        audience = get("AUDIENCE")
        if audience is not None:
            kwargs["audience"] = audience
        return cls(**kwargs)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> AppleSignInConfig:
        """Build a config from the environment, loading ``.env`` first."""
        load_dotenv(dotenv_path)
        return cls.from_mapping(os.environ)

    def scope_string(self, scopes: Sequence[str] | None = None) -> str:
        return " ".join(self.scopes if scopes is None else scopes)
