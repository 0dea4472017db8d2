"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

authenticate() is the session gate: it reads "Authorization: Bearer <token>",
verifies it with JWT_SECRET and returns the Principal. It raises instead of
returning None so every protected route gets the same two failure shapes:

  no/blank bearer header           -> MissingToken (401)
  bad signature, malformed, expired -> InvalidOrExpiredToken (403)

The web client also decodes the token locally to redirect to the login page
before a round trip. That check is a convenience; this one is the authority.

The other helpers hand out the per-process objects kept on app.state
(login limiter, HTTP session) and build the per-request token minter.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the dependency injection wiring. The rest of auth/ stays framework-free.
"""

from __future__ import annotations

import requests
from fastapi import Depends, Request
from slowapi.util import get_remote_address

from auth.csrf import CSRF_COOKIE, CSRF_HEADER, SAFE_METHODS, verify_csrf
from auth.delegated import DelegatedTokenMinter
from auth.ratelimit import LoginRateLimiter
from auth.tokens import decode_session_token
from core.config import Settings, get_settings
from core.errors import ConfigurationError, MissingToken
from core.models import Principal, RateLimitDecision


def bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate(request: Request, settings: Settings = Depends(get_settings)) -> Principal:
    """Require a valid session token. Use as a FastAPI dependency:

        @router.get("/protected")
        def route(principal: Principal = Depends(authenticate)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise MissingToken()
    if not settings.jwt_secret:
        raise ConfigurationError("Authentication is not configured")
    principal = decode_session_token(token, settings.jwt_secret)
    request.state.principal = principal
    return principal


def authenticate_for_google_token(request: Request, settings: Settings = Depends(get_settings)) -> Principal | None:
    """Session gate for the token endpoint, unless GOOGLE_TOKEN_REQUIRES_AUTH=false."""
    if not settings.google_token_requires_auth:
        return None
    return authenticate(request, settings)


def csrf_protect(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Enforce the double-submit CSRF check when CSRF_ENABLED=true."""
    if not settings.csrf_enabled or request.method in SAFE_METHODS:
        return
    verify_csrf(request.cookies.get(CSRF_COOKIE), request.headers.get(CSRF_HEADER))


def get_login_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_limiter


def get_http_session(request: Request) -> requests.Session:
    return request.app.state.http


def count_login_attempt(
    request: Request,
    login_limiter: LoginRateLimiter = Depends(get_login_limiter),
) -> RateLimitDecision:
    """Count this login attempt against the caller's address.

    Runs as a dependency so it is solved before the request body is
    validated: a malformed login body still uses up an attempt. The decision
    is kept on request.state so error responses carry the X-RateLimit-*
    headers too.
    """
    decision = login_limiter.admit(get_remote_address(request))
    request.state.rate_limit = decision
    return decision


def get_token_minter(
    settings: Settings = Depends(get_settings),
    session: requests.Session = Depends(get_http_session),
) -> DelegatedTokenMinter:
    return DelegatedTokenMinter.from_settings(settings, session)
