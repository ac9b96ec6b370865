import uuid

import pytest

import apple_signin as m
from apple_signin.state import SESSION_STATE_KEY


@pytest.fixture
def guard() -> m.StateNonceGuard:
    return m.StateNonceGuard()


def test_issue_returns_state_and_bound_nonce(guard: m.StateNonceGuard):
    state, nonce = guard.issue()

    assert len(state) == 40
    assert "." not in state
    prefix, _, suffix = nonce.partition(".")
    assert suffix == state
    uuid.UUID(prefix)  # raises if the random part is not a uuid


def test_issue_is_unpredictable(guard: m.StateNonceGuard):
    first = guard.issue()
    second = guard.issue()

    assert first[0] != second[0]
    assert first[1] != second[1]


def test_roundtrip_verifies(guard: m.StateNonceGuard):
    state, nonce = guard.issue()

    guard.verify(state, nonce, state)


def test_nonce_from_other_attempt_is_rejected(guard: m.StateNonceGuard):
    state, _ = guard.issue()
    _, other_nonce = guard.issue()

    with pytest.raises(m.InvalidStateError):
        guard.verify(state, other_nonce, state)


def test_state_not_matching_session_is_rejected(guard: m.StateNonceGuard):
    state, nonce = guard.issue()
    session_state, _ = guard.issue()

    with pytest.raises(m.InvalidStateError, match="state mismatch"):
        guard.verify(state, nonce, session_state)


@pytest.mark.parametrize(
    ("returned", "nonce", "stored"),
    [
        (None, "uuid.abc", "abc"),
        ("abc", None, "abc"),
        ("abc", "no-separator", "abc"),
        ("abc", "uuid.", "abc"),
        ("abc", "uuid.abc", None),
    ],
)
def test_missing_parts_are_rejected(
    guard: m.StateNonceGuard, returned: str | None, nonce: str | None, stored: str | None
):
    with pytest.raises(m.InvalidStateError) as exc_info:
        guard.verify(returned, nonce, stored)

    assert exc_info.value.kind is m.ErrorKind.INVALID_STATE
    assert exc_info.value.error_code == 403


def test_state_from_nonce_splits_on_first_separator():
    assert m.StateNonceGuard.state_from_nonce("a.b.c") == "b.c"
    assert m.StateNonceGuard.state_from_nonce("abc") is None


def test_non_string_nonce_claim_is_invalid_state(guard: m.StateNonceGuard):
    state, _ = guard.issue()

    assert m.StateNonceGuard.state_from_nonce(12345) is None
    with pytest.raises(m.InvalidStateError, match="missing nonce"):
        guard.verify(state, 12345, state)  # type: ignore[arg-type]


def test_store_and_consume_is_single_use(guard: m.StateNonceGuard):
    session: dict[str, str] = {}
    state, _ = guard.issue()

    guard.store(session, state)
    assert session[SESSION_STATE_KEY] == state

    assert guard.consume(session) == state
    assert guard.consume(session) is None
    assert SESSION_STATE_KEY not in session


def test_replayed_callback_is_rejected(guard: m.StateNonceGuard):
    session: dict[str, str] = {}
    state, nonce = guard.issue()
    guard.store(session, state)

    guard.verify(state, nonce, guard.consume(session))

    with pytest.raises(m.InvalidStateError):
        guard.verify(state, nonce, guard.consume(session))


def test_short_state_length_is_refused():
    with pytest.raises(ValueError):
        m.StateNonceGuard(state_length=8)
