"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment needed by the settings module (a throwaway RSA key
is generated per test session) and provides a fake GitHub API built on
``httpx.MockTransport``.
"""

import json
import os
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# CRITICAL: Set this before any imports that might load settings
# This prevents the .env file from being loaded during tests
os.environ["TESTING"] = "true"

_RSA_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PRIVATE_KEY_PEM = _RSA_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
).decode()
PUBLIC_KEY_PEM = _RSA_KEY.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
).decode()

os.environ["GITHUB_APP_ID"] = "4242"
os.environ["GITHUB_PRIVATE_KEY"] = PRIVATE_KEY_PEM
os.environ.pop("GITHUB_ENTERPRISE_HOST", None)
os.environ.setdefault("APP_RATE_LIMIT_MAX_CONCURRENT", "4")
os.environ.setdefault("APP_RATE_LIMIT_MIN_INTERVAL_SECONDS", "0")

from ghadapter.adapters.rate_limit.in_memory import PacedConcurrencyLimiter  # noqa: E402
from ghadapter.core.rate_limit import reset_rate_limiter  # noqa: E402


Responder = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """Minimal in-process GitHub API.

    Routes are keyed by method and path-with-query (``/repos/o/r/issues?page=2``).
    A route is either a fixed response or a callable taking the request.
    Every request is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.calls: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        *,
        status: int = 200,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if json_body is None:
                return httpx.Response(status, headers=headers)
            return httpx.Response(status, json=json_body, headers=headers)

        self.routes[(method.upper(), path)] = respond

    def add_responder(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method.upper(), path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, request.url.raw_path.decode())
        responder = self.routes.get(key)
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [call for call in self.calls if call.url.path == path]


def token_exchange_responder(prefix: str = "ghs_token") -> Responder:
    """Responder minting a new token value on every exchange."""

    counter = {"n": 0}

    def respond(request: httpx.Request) -> httpx.Response:
        counter["n"] += 1
        body = {"token": f"{prefix}_{counter['n']}", "expires_at": "2030-01-01T00:00:00Z"}
        return httpx.Response(201, content=json.dumps(body), headers={"content-type": "application/json"})

    return respond


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def private_key_pem() -> str:
    return PRIVATE_KEY_PEM


@pytest.fixture
def public_key_pem() -> str:
    return PUBLIC_KEY_PEM


@pytest.fixture
def limiter() -> PacedConcurrencyLimiter:
    return PacedConcurrencyLimiter(max_concurrent=4, min_interval_seconds=0)


@pytest.fixture(autouse=True)
def _fresh_process_limiter():
    # The process-wide limiter must not carry asyncio primitives across event loops
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def token_responder() -> Callable[..., Responder]:
    return token_exchange_responder
