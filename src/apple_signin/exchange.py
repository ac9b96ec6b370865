"""OAuth2 requests against Apple's authorization server.

Covers the server-side half of the authorization code flow:

- building the ``/auth/authorize`` URL the browser is redirected to
- exchanging the authorization code at ``/auth/token``
- refreshing an access token at ``/auth/token``
- revoking a token at ``/auth/revoke``

The token endpoint is called with HTTP Basic auth (``client_id:client_secret``),
left to requests to encode. The revoke endpoint takes the credentials as form
fields.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import quote, urlencode

import requests

from .config import AUTHORIZE_URL, REVOKE_URL, TOKEN_URL, AppleSignInConfig
from .errors import TokenExchangeError
from .models import TokenResponse
from .protocols import HttpResponse, HttpSession
from .state import StateNonceGuard

logger = logging.getLogger(__name__)


class OAuthExchange:
    """Authorization URL builder and token endpoint client.

    Args:
        config: Relying party configuration.
        client_secret: Callable returning the current client secret. Defaults
            to the static ``config.client_secret``.
        http: Transport. Defaults to a new ``requests.Session``.
    """

    def __init__(
        self,
        config: AppleSignInConfig,
        client_secret: Callable[[], str] | None = None,
        http: HttpSession | None = None,
    ) -> None:
        if client_secret is None:
            if not config.client_secret:
                raise ValueError("client_secret is not configured")
            static_secret = config.client_secret
            client_secret = lambda: static_secret  # noqa: E731
        self._config = config
        self._client_secret = client_secret
        self._http = http if http is not None else requests.Session()

    def build_authorization_url(
        self, state: str | None = None, nonce: str | None = None
    ) -> str:
        """Return the URL to redirect the user's browser to.

        ``state`` and ``nonce`` are only sent when state protection is enabled
        and a state is given; a missing nonce is derived from the state.
        """
        fields: dict[str, str] = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "scope": self._config.scope_string(),
            "response_type": "code",
            "response_mode": "form_post",
        }

        if self._config.use_state and state:
            fields["state"] = state
            fields["nonce"] = nonce or StateNonceGuard.nonce_for(state)

        fields.update(self._config.extra_params)
        return f"{AUTHORIZE_URL}?{urlencode(fields, quote_via=quote)}"

    def exchange_code_for_tokens(self, code: str) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: Transport failure, non-2xx answer, a body that
                is not a JSON object, or no ``id_token`` in the body.
        """
        body = self._post_token(
            {
                "code": code,
                "redirect_uri": self._config.redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        tokens = TokenResponse.from_mapping(body)
        if not tokens.id_token:
            raise TokenExchangeError("Token response has no id_token")
        return tokens

    def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Get a new access token. The response omits ``refresh_token``.

        Raises:
            TokenExchangeError: As for exchange_code_for_tokens.
        """
        body = self._post_token(
            {
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        return TokenResponse.from_mapping(body)

    def revoke_token(self, token: str, hint: str = "access_token") -> HttpResponse:
        """Ask Apple to revoke ``token``. The raw response is returned as-is.

        Raises:
            TokenExchangeError: If the request could not be sent at all.
        """
        try:
            return self._http.post(
                REVOKE_URL,
                data={
                    "client_id": self._config.client_id,
                    "client_secret": self._client_secret(),
                    "token": token,
                    "token_type_hint": hint,
                },
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as e:
            raise TokenExchangeError(f"Revoke request failed: {e}") from e

    def _post_token(self, form: Mapping[str, str]) -> dict[str, Any]:
        try:
            response = self._http.post(
                TOKEN_URL,
                data=dict(form),
                auth=(self._config.client_id, self._client_secret()),
                headers={"Accept": "application/json"},
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as e:
            raise TokenExchangeError(f"Token request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            error = body if isinstance(body, dict) else {}
            logger.warning(
                "Token endpoint answered %s (%s)",
                response.status_code,
                error.get("error", "no error code"),
            )
            raise TokenExchangeError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
                error=error.get("error"),
                error_description=error.get("error_description"),
            )

        if not isinstance(body, dict):
            raise TokenExchangeError(
                "Token response is not a JSON object", status_code=response.status_code
            )
        return body
