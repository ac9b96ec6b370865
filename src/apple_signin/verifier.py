"""Identity token verification using PyJWT.

This module provides the verifier that:
- Extracts the key ID (kid) from the token header without trusting it
- Resolves the signing key from Apple's cached key set
- Validates signature, issuer, audience and time validity with PyJWT
- Maps PyJWT exceptions to InvalidTokenError with the violated constraint

It is the only place that turns an identity token into trusted data. Nothing
downstream decodes tokens on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import jwt

from .config import APPLE_ISSUER, DEFAULT_LEEWAY
from .errors import ExpiredTokenError, InvalidTokenError
from .models import IdentityClaims
from .protocols import TokenVerifier

if TYPE_CHECKING:
    from .protocols import KeySetProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VerifyOptions:
    """Validation rules for Apple identity tokens.

    Attributes:
        issuer: Expected ``iss``; must match exactly. Apple always uses
            "https://appleid.apple.com".

        audience: Expected ``aud`` (your client id). None skips the check.

        algorithms: Allowed signing algorithms. Apple signs with RS256. MUST be
            an explicit allowlist to prevent algorithm confusion attacks.

        leeway: Clock skew tolerance in seconds for exp/nbf/iat. The check is
            loose by this amount in both directions.

    Security Invariants:
        - Never allow algorithm='none'
        - Keep leeway small so expiry is still enforced
    """

    issuer: str = APPLE_ISSUER
    audience: str | None = None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = DEFAULT_LEEWAY


class IdentityTokenVerifier(TokenVerifier):
    """Verifies Apple identity tokens against Apple's published keys.

    Architecture:
        1. Read kid from the unverified header
        2. Resolve the key from the KeySetProvider (no fallback to other keys)
        3. Verify signature and claims via PyJWT
        4. Map exceptions to InvalidTokenError

    Thread Safety:
        Safe to share between requests as long as the KeySetProvider is.

    Example:
        ```python
        verifier = IdentityTokenVerifier(
            KeySetCache(),
            VerifyOptions(audience="com.example.web"),
        )
        claims = verifier.verify(id_token)
        claims.sub
        ```
    """

    def __init__(
        self,
        key_sets: KeySetProvider,
        options: VerifyOptions | None = None,
    ) -> None:
        self._key_sets = key_sets
        self._opt = options or VerifyOptions()

    def verify(self, token: str) -> IdentityClaims:
        """Verify an identity token and return its claims.

        Raises:
            InvalidTokenError: Malformed token, missing or unknown kid,
                signature mismatch, issuer/audience mismatch, or the token is
                not yet valid.
            ExpiredTokenError: The token's exp has passed (leeway included).
            KeyFetchError: Apple's key set could not be fetched.
        """
        # Step 1: kid from the header. Nothing in the header is trusted; it
        # only selects which key to verify against.
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            # PyJWT also rejects a non-string kid here
            raise InvalidTokenError("malformed token") from e

        kid = header.get("kid")
        if not kid or not isinstance(kid, str):
            raise InvalidTokenError("missing key id")

        # Step 2: resolve the key. KeyFetchError propagates untouched.
        jwk = self._key_sets.get_key_set().get(kid)
        if jwk is None:
            logger.info("Rejected identity token signed with unknown kid %r", kid)
            raise InvalidTokenError("unknown key id")

        # Step 3: signature + claims
        try:
            payload = jwt.decode(
                token,
                jwk.key,
                algorithms=list(self._opt.algorithms),
                issuer=self._opt.issuer,
                audience=self._opt.audience,
                leeway=self._opt.leeway,
                options={
                    "require": ["iss", "iat", "exp"],
                    "verify_aud": self._opt.audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError("token expired") from e
        except jwt.ImmatureSignatureError as e:
            raise InvalidTokenError("token not yet valid") from e
        except jwt.InvalidSignatureError as e:
            raise InvalidTokenError("signature mismatch") from e
        except jwt.InvalidIssuerError as e:
            raise InvalidTokenError("issuer mismatch") from e
        except jwt.InvalidAudienceError as e:
            raise InvalidTokenError("audience mismatch") from e
        except jwt.MissingRequiredClaimError as e:
            raise InvalidTokenError(f"missing required claim: {e.claim}") from e
        except jwt.InvalidAlgorithmError as e:
            raise InvalidTokenError("algorithm not allowed") from e
        except jwt.InvalidTokenError as e:
            # Malformed segments, non-numeric time claims, etc.
            raise InvalidTokenError(f"token validation failed: {e}") from e

        return IdentityClaims.from_mapping(payload)
