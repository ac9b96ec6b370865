import json
import time
from collections.abc import Callable
from typing import Any

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from jwt.algorithms import RSAAlgorithm

from apple_signin import APPLE_ISSUER, AppleSignInConfig, SigningKeySet

CLIENT_ID = "com.example.web"
REDIRECT_URI = "https://example.com/login/apple/callback"


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret-key"
    return app


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _public_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> dict[str, Any]:
    jwk = RSAAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def jwks_document(signing_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    """Apple-style JWKS containing only the signing key, under kid 'k1'."""
    return {"keys": [_public_jwk(signing_key, "k1")]}


@pytest.fixture
def key_set(jwks_document: dict[str, Any]) -> SigningKeySet:
    return SigningKeySet.from_document(jwks_document)


@pytest.fixture
def make_id_token(signing_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_id_token(nonce="uuid.state", exp_delta=-3600)
    """

    def _make(
        *,
        kid: str | None = "k1",
        key: Any = None,
        algorithm: str = "RS256",
        exp_delta: int = 600,
        drop: tuple[str, ...] = (),
        **claims: Any,
    ) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": APPLE_ISSUER,
            "aud": CLIENT_ID,
            "sub": "sub-value",
            "email": "a@b.com",
            "iat": now,
            "exp": now + exp_delta,
        }
        payload.update(claims)
        for name in drop:
            payload.pop(name, None)

        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(
            payload, key if key is not None else signing_key, algorithm=algorithm, headers=headers
        )

    return _make


@pytest.fixture
def config() -> AppleSignInConfig:
    return AppleSignInConfig(
        client_id=CLIENT_ID,
        redirect_uri=REDIRECT_URI,
        client_secret="secret",
    )


class StaticKeySets:
    """Duck-typed KeySetProvider returning a fixed key set."""

    def __init__(self, key_set: SigningKeySet):
        self.key_set = key_set
        self.calls = 0

    def get_key_set(self) -> SigningKeySet:
        self.calls += 1
        return self.key_set


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    _NO_JSON = object()

    def __init__(self, status_code: int = 200, json_data: Any = _NO_JSON, text: str = ""):
        self.status_code = status_code
        self._json = json_data
        self.text = text if json_data is self._NO_JSON else json.dumps(json_data)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if self._json is self._NO_JSON:
            raise requests.JSONDecodeError("Expecting value", self.text, 0)
        return self._json

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)  # type: ignore[arg-type]


class FakeHttp:
    """
    Duck-typed HttpSession.

    Routes map (method, url) to a FakeResponse, or to an exception to raise.
    Every call is recorded as (method, url, kwargs).
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def add(self, method: str, url: str, response: Any) -> None:
        self.routes[(method, url)] = response

    def count(self, method: str, url: str) -> int:
        return sum(1 for m, u, _ in self.calls if (m, u) == (method, url))

    def _dispatch(self, method: str, url: str, kwargs: dict[str, Any]) -> Any:
        self.calls.append((method, url, kwargs))
        response = self.routes.get((method, url))
        if response is None:
            return FakeResponse(404, {"error": "not_found"})
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._dispatch("POST", url, kwargs)


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


class FakeRedis:
    """
    Minimal redis stub for RedisCache tests.
    Stores bytes under keys and supports setex/delete.
    """

    def __init__(self):
        self._store: dict[str, tuple[bytes, int]] = {}

    def get(self, key: str):
        item = self._store.get(key)
        if item is None:
            return None
        data, expires_at = item
        if int(time.time()) >= expires_at:
            self._store.pop(key, None)
            return None
        return data

    def setex(self, key: str, ttl_seconds: int, value: str | bytes):
        expires_at = int(time.time()) + int(ttl_seconds)
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._store[key] = (value, expires_at)

    def delete(self, key: str):
        self._store.pop(key, None)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def http_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def static_key_sets(key_set: SigningKeySet) -> StaticKeySets:
    return StaticKeySets(key_set)
