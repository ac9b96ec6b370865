"""Sign in with Apple provider: the authorization code flow end to end.

Flow on the callback
--------------------
1. Exchange the authorization code for tokens (OAuthExchange).
2. Verify the returned identity token (IdentityTokenVerifier + KeySetCache).
3. Check the state/nonce bond against the session (StateNonceGuard).
4. Map the verified claims to a NormalizedIdentity (IdentityMapper).

Any failure aborts the login; no partially populated identity is returned.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from .client_secret import ClientSecretFactory
from .config import AppleSignInConfig
from .errors import AuthorizationDeniedError, MissingCodeError
from .exchange import OAuthExchange
from .key_set_cache import KeySetCache
from .mapper import IdentityMapper, parse_user_payload
from .models import CallbackParams, NormalizedIdentity, TokenResponse
from .protocols import CacheStore, HttpResponse, HttpSession, SessionStore, TokenVerifier
from .state import StateNonceGuard
from .verifier import IdentityTokenVerifier, VerifyOptions

logger = logging.getLogger(__name__)


class AppleProvider:
    """Composes the Sign in with Apple components.

    Example:
        ```python
        provider = AppleProvider(AppleSignInConfig.from_env())

        # login view
        url = provider.begin_authorization(session)

        # callback view (Apple POSTs the form)
        identity = provider.user(
            CallbackParams(code=form["code"], state=form["state"], user=form.get("user")),
            session,
        )
        ```

    Attributes:
        config: The relying party configuration.
        exchange: Token endpoint client.
        verifier: Identity token verifier.
        guard: State/nonce guard.
        mapper: Claims to identity mapper.
    """

    def __init__(
        self,
        config: AppleSignInConfig,
        *,
        http: HttpSession | None = None,
        cache: CacheStore | None = None,
        verifier: TokenVerifier | None = None,
        exchange: OAuthExchange | None = None,
        guard: StateNonceGuard | None = None,
        mapper: IdentityMapper | None = None,
    ) -> None:
        http = http if http is not None else requests.Session()
        self.config = config

        if exchange is None:
            secret = None
            if not config.client_secret:
                secret = ClientSecretFactory(
                    team_id=config.team_id or "",
                    key_id=config.key_id or "",
                    client_id=config.client_id,
                    private_key=config.private_key or "",
                ).secret
            exchange = OAuthExchange(config, client_secret=secret, http=http)
        self.exchange = exchange

        if verifier is None:
            key_sets = KeySetCache(
                cache=cache,
                http=http,
                timeout=config.http_timeout,
            )
            verifier = IdentityTokenVerifier(
                key_sets,
                VerifyOptions(audience=config.audience, leeway=config.leeway),
            )
        self.verifier = verifier

        self.guard = guard or StateNonceGuard()
        self.mapper = mapper or IdentityMapper()

    def begin_authorization(self, session: SessionStore) -> str:
        """Start a login: remember a fresh state and return Apple's URL."""
        if not self.config.use_state:
            return self.exchange.build_authorization_url()

        state, nonce = self.guard.issue()
        self.guard.store(session, state)
        return self.exchange.build_authorization_url(state, nonce)

    def user(self, params: CallbackParams, session: SessionStore) -> NormalizedIdentity:
        """Complete a login from the callback parameters.

        Raises:
            AuthorizationDeniedError: Apple reported an error (e.g. the user
                cancelled).
            MissingCodeError: The callback carries no code.
            TokenExchangeError: The code could not be exchanged.
            KeyFetchError: Apple's signing keys could not be fetched.
            InvalidTokenError: The identity token failed verification.
            InvalidStateError: State/nonce do not match this session.
            MappingError: The token has no subject.
        """
        if params.error:
            raise AuthorizationDeniedError(f"Authorization failed: {params.error}")
        if not params.code:
            raise MissingCodeError()

        # The pending state is spent whatever the outcome of this callback.
        session_state = self.guard.consume(session) if self.config.use_state else None

        tokens = self.exchange.exchange_code_for_tokens(params.code)
        claims = self.verifier.verify(tokens.id_token or "")

        if self.config.use_state:
            self.guard.verify(params.state, claims.nonce, session_state)

        identity = self.mapper.map(claims, parse_user_payload(params.user), tokens)
        logger.info("Signed in Apple user %s", identity.id)
        return identity

    def user_from_identity_token(
        self, token: str, user_info: Any = None
    ) -> NormalizedIdentity:
        """Verify an identity token obtained by a native client and map it.

        No code exchange or state check takes place; the token's signature,
        issuer, audience and validity window are still enforced.
        """
        claims = self.verifier.verify(token)
        return self.mapper.map(claims, parse_user_payload(user_info))

    def refresh_token(self, refresh_token: str) -> TokenResponse:
        return self.exchange.refresh_token(refresh_token)

    def revoke_token(self, token: str, hint: str = "access_token") -> HttpResponse:
        return self.exchange.revoke_token(token, hint)
