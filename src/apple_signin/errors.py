"""Sign in with Apple errors.

This module defines the exception hierarchy for the login flow. All errors
inherit from AuthError so application code can catch every failure at once,
and each class carries an ``ErrorKind`` so callers can branch on the kind of
failure without importing every class.

Security Note:
    Descriptions are short and generic. They name the violated constraint but
    never echo token contents or provider secrets back to the client.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced by the login flow."""

    KEY_FETCH = "key_fetch"
    INVALID_TOKEN = "invalid_token"
    INVALID_STATE = "invalid_state"
    TOKEN_EXCHANGE = "token_exchange"
    MAPPING = "mapping"
    MISSING_CODE = "missing_code"
    AUTHORIZATION_DENIED = "authorization_denied"


class AuthError(Exception):
    """Base exception for all Sign in with Apple failures.

    Attributes:
        kind: Failure category, see ErrorKind.
        error_code: HTTP status the Flask integration answers with.
        description: Human readable reason (first positional argument).
    """

    kind: ErrorKind
    error_code: int = 401
    default_description = "Authentication failed"

    def __init__(self, description: str | None = None) -> None:
        super().__init__(description or self.default_description)
        self.description = description or self.default_description


class KeyFetchError(AuthError):
    """Raised when Apple's signing keys cannot be retrieved or parsed.

    Fatal to the current verification attempt. There is no fallback to a
    stale key set: callers must fail closed.
    """

    kind = ErrorKind.KEY_FETCH
    error_code = 503
    default_description = "Unable to fetch signing keys"


class InvalidTokenError(AuthError):
    """Raised when an identity token cannot be trusted.

    This occurs when:
    - The token is malformed (not a compact JWS)
    - The header has no ``kid`` or names a key Apple does not publish
    - The signature does not verify against the resolved key
    - ``iss`` is not Apple's issuer or ``aud`` is not our client id
    - The token is expired or not yet valid (beyond leeway)
    """

    kind = ErrorKind.INVALID_TOKEN
    error_code = 401
    default_description = "Invalid token"


class ExpiredTokenError(InvalidTokenError):
    """Raised when the token's ``exp`` claim has passed (leeway included).

    Treat identically to InvalidTokenError; the subclass only helps with
    observability.
    """

    default_description = "token expired"


class InvalidStateError(AuthError):
    """Raised when the callback's state does not match the session or nonce.

    Surfaced distinctly from InvalidTokenError: a cryptographically valid token
    bound to a different authorization attempt points to a forgery or
    token-substitution attempt, not to a provider-side problem.
    """

    kind = ErrorKind.INVALID_STATE
    error_code = 403
    default_description = "Invalid state"


class TokenExchangeError(AuthError):
    """Raised when the token endpoint fails or answers with an unusable body.

    Attributes:
        status_code: HTTP status of the provider response, if one was received.
        error: Provider ``error`` field (e.g. ``invalid_grant``), if present.
        error_description: Provider ``error_description`` field, if present.
    """

    kind = ErrorKind.TOKEN_EXCHANGE
    error_code = 502
    default_description = "Token exchange failed"

    def __init__(
        self,
        description: str | None = None,
        *,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> None:
        super().__init__(description)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class MappingError(AuthError):
    """Raised when verified claims lack the subject (provider contract violation)."""

    kind = ErrorKind.MAPPING
    error_code = 502
    default_description = "Unable to map identity"


class MissingCodeError(AuthError):
    """Raised when the callback request carries no authorization code."""

    kind = ErrorKind.MISSING_CODE
    error_code = 400
    default_description = "Missing authorization code"


class AuthorizationDeniedError(AuthError):
    """Raised when Apple redirects back with an ``error`` parameter.

    The most common value is ``user_cancelled_authorize``.
    """

    kind = ErrorKind.AUTHORIZATION_DENIED
    error_code = 401
    default_description = "Authorization denied"
