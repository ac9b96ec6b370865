"""Flask extension for Sign in with Apple.

Key Components:
- AppleSignInExtension: Login redirect and callback decorator for Flask apps

Security Model:
1. ``authorize_redirect`` stores a fresh state in ``flask.session`` and
   redirects to Apple
2. Apple POSTs the callback (code, state, optional user payload)
3. The ``callback`` decorator runs the full provider flow: code exchange,
   identity token verification, state/nonce check, identity mapping
4. On success the view receives the identity; on failure the request is
   aborted with the error's HTTP status (400/401/403/502/503)

Apple posts the callback cross-site, so a ``SameSite=Strict`` session cookie
is not sent with it. Use ``SESSION_COOKIE_SAMESITE="None"`` (with
``Secure``) or the state check will always fail.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, current_app, redirect, session

from .config import AppleSignInConfig
from .errors import AuthError
from .extractors import CallbackExtractor
from .provider import AppleProvider

if TYPE_CHECKING:
    from collections.abc import Callable

    from werkzeug.wrappers import Response

_EXT_KEY: Final[str] = "apple_signin"
"""Flask extensions registry key for AppleSignInExtension."""

logger = logging.getLogger(__name__)


class AppleSignInExtension:
    """
    Flask glue for the Sign in with Apple flow.

    Pattern:
        apple = AppleSignInExtension()
        apple.init_app(app)

    Usage:
        @app.get("/login/apple")
        def login():
            return apple.authorize_redirect()

        @app.post("/login/apple/callback")
        @apple.callback
        def callback(identity):
            ...
    """

    def __init__(
        self,
        app: Flask | None = None,
        *,
        provider: AppleProvider | None = None,
        extractor: CallbackExtractor | None = None,
    ) -> None:
        self._provider: AppleProvider | None = provider
        self._extractor = extractor or CallbackExtractor()
        if app is not None:
            self.init_app(app, provider=provider)

    def init_app(self, app: Flask, *, provider: AppleProvider | None = None) -> None:
        """Initialize the Flask app.

        Args:
            app: The Flask application instance.
            provider: Provider to use. When omitted one is built from the
                ``APPLE_*`` keys of ``app.config``.
        """
        if provider is not None:
            self._provider = provider
        elif self._provider is None:
            self._provider = AppleProvider(AppleSignInConfig.from_mapping(app.config))

        app.extensions[_EXT_KEY] = self

    @property
    def provider(self) -> AppleProvider:
        if self._provider is None:
            raise RuntimeError("AppleSignInExtension is not initialized")
        return self._provider

    @staticmethod
    def current() -> AppleSignInExtension:
        """Return the extension registered on the current app."""
        return current_app.extensions[_EXT_KEY]

    def authorize_redirect(self) -> Response:
        """Redirect the browser to Apple's authorization page."""
        return redirect(self.provider.begin_authorization(session))

    def callback(self, view: Callable[..., Any]) -> Callable[..., Any]:
        """Decorator for the redirect URI view.

        Error mapping:
        - ``MissingCodeError``         -> HTTP 400
        - ``InvalidTokenError``        -> HTTP 401
        - ``AuthorizationDeniedError`` -> HTTP 401
        - ``InvalidStateError``        -> HTTP 403
        - ``TokenExchangeError``       -> HTTP 502
        - ``MappingError``             -> HTTP 502
        - ``KeyFetchError``            -> HTTP 503

        Side Effects:
            - Pops the pending state from ``flask.session``.
            - May terminate request handling early via ``flask.abort``.
        """

        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                identity = self.provider.user(self._extractor.extract(), session)
            except AuthError as e:
                logger.info("Apple sign-in failed (%s): %s", e.kind.value, e.description)
                abort(e.error_code, description=e.description)

            return view(*args, identity=identity, **kwargs)

        return wrapper
