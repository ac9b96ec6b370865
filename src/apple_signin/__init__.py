"""
Sign in with Apple for Flask and plain Python.

High-level flow (per login)
---------------------------
1. `AppleProvider.begin_authorization(session)` stores a fresh state and
   returns Apple's authorization URL (state + nonce included).
2. Apple POSTs the callback: `code`, `state` and, on first consent, `user`.
3. `AppleProvider.user(params, session)`:
   - Exchanges the code at the token endpoint (`OAuthExchange`)
   - Verifies the identity token (`IdentityTokenVerifier`, keys from `KeySetCache`)
   - Checks the nonce/state bond against the session (`StateNonceGuard`)
   - Maps claims to a `NormalizedIdentity` (`IdentityMapper`)

Security notes
--------------
- Never trust claims until signature verification succeeds.
- Only RS256 is accepted; the issuer must be exactly https://appleid.apple.com.
- The key set is cached for 300 seconds and never served stale.
- The session state is single-use; a replayed callback is rejected.

Example usage
-------------

.. code-block:: python

    from flask import Flask
    from apple_signin import AppleSignInExtension

    app = Flask(__name__)
    app.config.update(
        APPLE_CLIENT_ID="com.example.web",
        APPLE_REDIRECT_URI="https://example.com/login/apple/callback",
        APPLE_TEAM_ID="ABCDE12345",
        APPLE_KEY_ID="XYZ987",
        APPLE_PRIVATE_KEY=open("AuthKey_XYZ987.p8").read(),
    )
    apple = AppleSignInExtension(app)

    @app.get("/login/apple")
    def login():
        return apple.authorize_redirect()

    @app.post("/login/apple/callback")
    @apple.callback
    def callback(identity):
        return {"id": identity.id, "email": identity.email}
"""

# Cache stores
from .cache_stores import InMemoryCache, RedisCache

# Client secret
from .client_secret import ClientSecretFactory

# Configuration
from .config import APPLE_ISSUER, JWKS_CACHE_TTL, AppleSignInConfig

# Errors
from .errors import (
    AuthError,
    AuthorizationDeniedError,
    ErrorKind,
    ExpiredTokenError,
    InvalidStateError,
    InvalidTokenError,
    KeyFetchError,
    MappingError,
    MissingCodeError,
    TokenExchangeError,
)

# OAuth exchange
from .exchange import OAuthExchange

# Extractors
from .extractors import CallbackExtractor

# Flask extension
from .flask_extension import AppleSignInExtension

# Key set cache
from .key_set_cache import KeySetCache

# Mapping
from .mapper import IdentityMapper, parse_user_payload

# Models
from .models import (
    CallbackParams,
    IdentityClaims,
    NormalizedIdentity,
    SigningKeySet,
    TokenResponse,
)

# Protocols
from .protocols import (
    CacheStore,
    Claims,
    HttpSession,
    KeySetProvider,
    SessionStore,
    TokenVerifier,
)

# Provider
from .provider import AppleProvider

# State / nonce
from .state import StateNonceGuard

# Verifier
from .verifier import IdentityTokenVerifier, VerifyOptions

__all__ = [
    # Errors
    "AuthError",
    "AuthorizationDeniedError",
    "ErrorKind",
    "ExpiredTokenError",
    "InvalidStateError",
    "InvalidTokenError",
    "KeyFetchError",
    "MappingError",
    "MissingCodeError",
    "TokenExchangeError",
    # Configuration
    "APPLE_ISSUER",
    "JWKS_CACHE_TTL",
    "AppleSignInConfig",
    # Protocols
    "CacheStore",
    "Claims",
    "HttpSession",
    "KeySetProvider",
    "SessionStore",
    "TokenVerifier",
    # Models
    "CallbackParams",
    "IdentityClaims",
    "NormalizedIdentity",
    "SigningKeySet",
    "TokenResponse",
    # Cache stores
    "InMemoryCache",
    "RedisCache",
    # Key set cache
    "KeySetCache",
    # Verifier
    "IdentityTokenVerifier",
    "VerifyOptions",
    # State / nonce
    "StateNonceGuard",
    # OAuth exchange
    "OAuthExchange",
    "ClientSecretFactory",
    # Mapping
    "IdentityMapper",
    "parse_user_payload",
    # Provider
    "AppleProvider",
    # Flask extension
    "AppleSignInExtension",
    "CallbackExtractor",
]
