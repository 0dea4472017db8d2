"""
tests/conftest.py -- Shared test fixtures for ExpenseGate integration tests.

This module provides:
  - make_settings(): a Settings object built from keyword arguments only
  - _patch_lifespan(): wires a test limiter and HTTP session into app.state
  - client: TestClient over the real app with settings overridden
  - use_settings: swap the settings mid-test (e.g. to drop a secret)
  - login_token: a valid session token for the configured operator

The operator is "ops" with password "correct". Its hash uses bcrypt cost 4 to
keep the suite fast; the server checks it the same way as a cost-12 hash.

Outbound Google calls go through app.state.http, which is a MagicMock here.
Tests that need a token exchange or Sheets response configure it directly.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import bcrypt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from api.limiter import limiter as token_limiter
from api.main import app
from auth.ratelimit import LoginRateLimiter
from auth.tokens import create_session_token
from core.config import Settings, get_settings

OPERATOR = "ops"
PASSWORD = "correct"
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()
JWT_SECRET = "test-secret-0123456789abcdef0123456789abcdef"
SERVICE_ACCOUNT_EMAIL = "sheets-writer@expense-project.iam.gserviceaccount.com"


# ---------------------------------------------------------------------------
# Keys and settings
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key_pair() -> tuple[str, str]:
    """(private PEM, public PEM) for signing service-account assertions."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
        .decode()
    )
    return private_pem, public_pem


def make_settings(**overrides) -> Settings:
    """Build Settings from arguments only -- no .env files are read."""
    values = {
        "auth_username": OPERATOR,
        "auth_password_hash": PASSWORD_HASH,
        "jwt_secret": JWT_SECRET,
        "jwt_expires_in": "1h",
        "max_login_attempts": 5,
        "login_window_minutes": 15,
        "spreadsheet_id": "sheet-123",
        "service_account_email": "",
        "service_account_private_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(rsa_key_pair) -> Settings:
    private_pem, _ = rsa_key_pair
    # Stored the way it arrives from a single-line env var.
    return make_settings(
        service_account_email=SERVICE_ACCOUNT_EMAIL,
        service_account_private_key=private_pem.replace("\n", "\\n"),
    )


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def _patch_lifespan(login_limiter: LoginRateLimiter, http_session: MagicMock):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.login_limiter = login_limiter
        app.state.http = http_session
        yield

    return test_lifespan


@pytest.fixture
def http_session() -> MagicMock:
    return MagicMock(name="requests.Session")


@pytest.fixture
def login_limiter(settings: Settings) -> LoginRateLimiter:
    return LoginRateLimiter.from_settings(settings)


@pytest.fixture
def client(settings, login_limiter, http_session) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a fresh limiter, mocked HTTP and test settings."""
    app.router.lifespan_context = _patch_lifespan(login_limiter, http_session)
    app.dependency_overrides[get_settings] = lambda: settings
    token_limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def use_settings() -> Callable[[Settings], None]:
    """Replace the settings seen by route handlers for the rest of the test."""

    def _use(new_settings: Settings) -> None:
        app.dependency_overrides[get_settings] = lambda: new_settings

    return _use


@pytest.fixture
def login_token() -> str:
    return create_session_token(OPERATOR, JWT_SECRET, 3600).token


@pytest.fixture
def auth_headers(login_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {login_token}"}


@pytest.fixture
def token_response() -> Callable[..., MagicMock]:
    """Factory for fake requests.Response objects from Google's token endpoint.

    google-auth reads status_code and the raw content, not .json().
    """

    def _make(access_token: str = "ya29.test-token", expires_in: object = 3599, status_code: int = 200) -> MagicMock:
        resp = MagicMock(name="token_response")
        resp.status_code = status_code
        resp.headers = {"Content-Type": "application/json"}
        if status_code == 200:
            body = {"access_token": access_token, "expires_in": expires_in, "token_type": "Bearer"}
        else:
            body = {"error": "invalid_grant", "error_description": "Invalid JWT Signature."}
        resp.content = json.dumps(body).encode("utf-8")
        return resp

    return _make


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
