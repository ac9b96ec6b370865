"""Mapping of verified claims to a NormalizedIdentity.

Apple never puts the user's name in the signed token. It is posted to the
callback once, on the user's first authorization, as a JSON ``user`` field:

    {"name": {"firstName": "Jane", "lastName": "Doe"}, "email": "..."}

That payload is not signed, so it only ever contributes the display name. The
id and email come from the verified token. No trust decisions happen here;
the mapper runs after the token and state checks have passed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .errors import MappingError
from .models import IdentityClaims, NormalizedIdentity, TokenResponse

logger = logging.getLogger(__name__)


def parse_user_payload(value: Any) -> dict[str, Any]:
    """Normalize the callback's ``user`` field to a dict.

    Accepts an already-decoded mapping, a JSON string, or nothing. Blank input
    yields ``{}``. A payload that is not a JSON object is logged and ignored;
    it only ever carries the display name.
    """
    if isinstance(value, Mapping):
        return dict(value)

    text = "" if value is None else str(value).strip()
    if not text:
        return {}

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed user payload in callback")
        return {}

    if not isinstance(decoded, dict):
        logger.warning("Ignoring user payload that is not a JSON object")
        return {}
    return decoded


def _full_name(name: Any) -> str | None:
    if not isinstance(name, Mapping):
        return None
    full = f"{name.get('firstName') or ''} {name.get('lastName') or ''}".strip()
    return full or None


class IdentityMapper:
    """Builds the NormalizedIdentity handed to the application."""

    def map(
        self,
        claims: IdentityClaims,
        user_info: Mapping[str, Any] | None = None,
        tokens: TokenResponse | None = None,
    ) -> NormalizedIdentity:
        """Map verified claims (plus optional user payload and tokens).

        Raises:
            MappingError: If the claims have no subject.
        """
        if not claims.sub:
            raise MappingError("Identity token has no subject claim")

        data = dict(claims.raw)
        name: str | None = None
        if user_info and "name" in user_info:
            data["name"] = user_info["name"]
            name = _full_name(user_info["name"])
        raw = MappingProxyType(data)

        if tokens is None:
            return NormalizedIdentity(
                id=claims.sub, name=name, email=claims.email, raw=raw
            )

        return NormalizedIdentity(
            id=claims.sub,
            name=name,
            email=claims.email,
            raw=raw,
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            id_token=tokens.id_token,
            token_response=tokens.raw,
        )
