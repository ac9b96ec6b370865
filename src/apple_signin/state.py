"""State and nonce anti-forgery protocol.

Every authorization request gets a fresh random ``state``. The ``nonce`` sent
along with it is ``"<uuid4>.<state>"``: unpredictable, yet it names the state
it belongs to. Apple echoes the nonce inside the signed identity token, so on
the callback we can check that:

    1. the token's nonce points at the state returned in the callback, and
    2. that state is the one stored in this user's session.

A token minted for another authorization attempt therefore fails (1) or (2)
even when its signature is valid.

The stored state is single-use: ``consume`` pops it from the session, so a
replayed callback finds nothing to compare against and is rejected.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from typing import Final

from authlib.common.security import generate_token

from .errors import InvalidStateError
from .protocols import SessionStore

logger = logging.getLogger(__name__)

SESSION_STATE_KEY: Final[str] = "apple_signin_state"
STATE_LENGTH: Final[int] = 40
_NONCE_SEPARATOR: Final[str] = "."


def _equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class StateNonceGuard:
    """Issues and checks state/nonce pairs for the authorization code flow.

    Attributes:
        _session_key: Session key under which the pending state is stored.
        _length: Length of generated state tokens.
    """

    def __init__(
        self,
        session_key: str = SESSION_STATE_KEY,
        state_length: int = STATE_LENGTH,
    ) -> None:
        if state_length < 16:
            raise ValueError(f"state_length must be at least 16, got {state_length}")
        self._session_key = session_key
        self._length = state_length

    def issue(self) -> tuple[str, str]:
        """Return a new ``(state, nonce)`` pair."""
        state = generate_token(self._length)
        return state, self.nonce_for(state)

    @staticmethod
    def nonce_for(state: str) -> str:
        return f"{uuid.uuid4()}{_NONCE_SEPARATOR}{state}"

    @staticmethod
    def state_from_nonce(nonce: object) -> str | None:
        """Return the state component of a nonce, or None if it has none."""
        if not isinstance(nonce, str) or _NONCE_SEPARATOR not in nonce:
            return None
        return nonce.split(_NONCE_SEPARATOR, 1)[1] or None

    def verify(
        self,
        returned_state: str | None,
        token_nonce: str | None,
        session_state: str | None,
    ) -> None:
        """Check the state/nonce bond.

        Args:
            returned_state: ``state`` parameter of the callback request.
            token_nonce: ``nonce`` claim of the verified identity token.
            session_state: State stored for this session when the
                authorization request was issued.

        Raises:
            InvalidStateError: If any value is missing, the nonce does not
                name the returned state, or the returned state is not the one
                stored in the session.
        """
        if not returned_state:
            raise InvalidStateError("missing state")
        if not session_state:
            raise InvalidStateError("no pending authorization for this session")

        nonce_state = self.state_from_nonce(token_nonce)
        if nonce_state is None:
            raise InvalidStateError("missing nonce")

        if not _equals(nonce_state, returned_state):
            logger.warning("Identity token nonce is bound to a different state")
            raise InvalidStateError("nonce does not match state")

        if not _equals(returned_state, session_state):
            logger.warning("Callback state does not match the session state")
            raise InvalidStateError("state mismatch")

    def store(self, session: SessionStore, state: str) -> None:
        """Remember ``state`` as the pending authorization for this session."""
        session[self._session_key] = state

    def consume(self, session: SessionStore) -> str | None:
        """Pop the pending state. A second call returns None."""
        return session.pop(self._session_key, None)
