"""Client secret minting.

Apple does not issue static client secrets. The secret sent to the token and
revoke endpoints is an ES256 JWT signed with the developer's Sign in with Apple
private key:

    header:  {"alg": "ES256", "kid": <key id>}
    claims:  {"iss": <team id>, "iat": now, "exp": now + lifetime,
              "aud": "https://appleid.apple.com", "sub": <client id>}

Apple rejects secrets valid for more than six months.
"""

from __future__ import annotations

import threading
import time
from typing import Final

import jwt

from .config import APPLE_ISSUER

MAX_LIFETIME: Final[int] = 15_777_000
DEFAULT_LIFETIME: Final[int] = 3600
_RENEW_MARGIN: Final[int] = 60


class ClientSecretFactory:
    """Mints and caches the client secret JWT.

    A minted secret is reused until it is within a minute of expiring.
    """

    def __init__(
        self,
        *,
        team_id: str,
        key_id: str,
        client_id: str,
        private_key: str,
        lifetime: int = DEFAULT_LIFETIME,
    ) -> None:
        if not 0 < lifetime <= MAX_LIFETIME:
            raise ValueError(
                f"lifetime must be between 1 and {MAX_LIFETIME} seconds, got {lifetime}"
            )
        self._team_id = team_id
        self._key_id = key_id
        self._client_id = client_id
        self._private_key = private_key
        self._lifetime = lifetime

        self._lock = threading.Lock()
        self._secret: str | None = None
        self._expires_at: float = 0.0

    def secret(self) -> str:
        now = time.time()
        with self._lock:
            if self._secret is None or now >= self._expires_at - _RENEW_MARGIN:
                self._secret = self._mint(int(now))
                self._expires_at = int(now) + self._lifetime
            return self._secret

    def _mint(self, issued_at: int) -> str:
        claims = {
            "iss": self._team_id,
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
            "aud": APPLE_ISSUER,
            "sub": self._client_id,
        }
        return jwt.encode(
            claims,
            self._private_key,
            algorithm="ES256",
            headers={"kid": self._key_id},
        )
