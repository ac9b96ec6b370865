"""Callback parameter extraction from the Flask request.

Apple redirects back with ``response_mode=form_post``, so the parameters
arrive as a form body. ``request.values`` also covers query-string callbacks
(``response_mode=query``) for providers configured without scopes.
"""

from __future__ import annotations

from flask import request

from .models import CallbackParams


class CallbackExtractor:
    """Reads ``code``, ``state``, ``user`` and ``error`` from the request.

    Missing values come back as None; deciding whether they are required is
    left to AppleProvider.
    """

    def extract(self) -> CallbackParams:
        values = request.values
        return CallbackParams(
            code=values.get("code") or None,
            state=values.get("state") or None,
            user=values.get("user"),
            error=values.get("error") or None,
        )
