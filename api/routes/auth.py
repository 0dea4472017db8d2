"""
api/routes/auth.py -- Operator login, session checks and delegated Google tokens.

Routes:
  POST /api/auth/login         -- password login; returns a bearer session token
  POST /api/auth/logout        -- no-op acknowledgement; the client drops its token
  GET  /api/auth/session       -- current principal and token expiry (requires auth)
  GET  /api/protected          -- minimal authenticated probe (requires auth)
  POST /api/auth/google-token  -- short-lived spreadsheet access token
  GET  /api/csrf-token         -- double-submit CSRF token

Security:
  Login is counted by the injected LoginRateLimiter (count_login_attempt)
  before the body is validated or the password checked, so malformed, wrong
  and right attempts all use up an attempt.
  issue() runs bcrypt on every path -- never compare credentials inline here.
  Login and token responses carry Cache-Control: no-store.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    CsrfTokenResponse,
    GoogleTokenResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    ProtectedResponse,
    SessionResponse,
)
from auth.csrf import CSRF_COOKIE, CSRF_COOKIE_MAX_AGE, generate_csrf_token
from auth.delegated import DelegatedTokenMinter
from auth.dependencies import (
    authenticate,
    authenticate_for_google_token,
    count_login_attempt,
    csrf_protect,
    get_token_minter,
)
from auth.tokens import issue
from core.config import Settings, get_settings
from core.models import Principal, RateLimitDecision

# Auth policy:
# - POST /api/auth/login:         public, rate-limited, CSRF-checked when enabled
# - POST /api/auth/logout:        public -- there is no server session to end
# - GET  /api/csrf-token:         public
# - GET  /api/auth/session:       requires auth (authenticate)
# - GET  /api/protected:          requires auth (authenticate)
# - POST /api/auth/google-token:  requires auth unless GOOGLE_TOKEN_REQUIRES_AUTH=false
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    body: LoginRequest,
    decision: RateLimitDecision = Depends(count_login_attempt),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Exchange the operator username/password for a session token.

    Wrong username and wrong password return the same 401 body. The
    X-RateLimit-* headers are attached to successes here and to failures by
    the error handlers (via request.state.rate_limit).
    """
    csrf_protect(request, settings)

    issued = issue(settings, body.username, body.password)
    resp = JSONResponse(
        content=LoginResponse(token=issued.token, expires_in=issued.expires_in).model_dump(by_alias=True),
        headers=decision.headers(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=LogoutResponse)
def logout() -> LogoutResponse:
    """Acknowledge logout. Tokens are not revoked server-side; they expire."""
    return LogoutResponse()


@router.get("/csrf-token", response_model=CsrfTokenResponse)
def csrf_token(request: Request, settings: Settings = Depends(get_settings)) -> JSONResponse:
    """Return the CSRF token for this browser, creating one if needed.

    The cookie is deliberately readable by JS (httponly=False): the client
    must copy it into the X-CSRF-Token header.
    """
    token = request.cookies.get(CSRF_COOKIE) or generate_csrf_token()
    resp = JSONResponse(content=CsrfTokenResponse(csrf_token=token).model_dump(by_alias=True))
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=CSRF_COOKIE_MAX_AGE,
    )
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/session", response_model=SessionResponse)
def session(principal: Principal = Depends(authenticate)) -> SessionResponse:
    return SessionResponse(user=principal.username, expires_at=principal.expires_at.isoformat())


@router.get("/protected", response_model=ProtectedResponse)
def protected(principal: Principal = Depends(authenticate)) -> ProtectedResponse:
    return ProtectedResponse(user=principal.username)


@router.post("/auth/google-token", response_model=GoogleTokenResponse)
@limiter.limit(lambda: get_settings().token_rate_limit)
def google_token(
    request: Request,
    principal: Optional[Principal] = Depends(authenticate_for_google_token),
    minter: DelegatedTokenMinter = Depends(get_token_minter),
) -> JSONResponse:
    """Mint a spreadsheet-scoped Google access token for the browser.

    Every call performs a fresh exchange with Google; nothing is cached.
    Errors come back as a generic 500 -- details are in the server log.
    """
    token = minter.mint()
    resp = JSONResponse(
        content=GoogleTokenResponse(
            access_token=token.value,
            expires_in=token.expires_in,
            token_type=token.token_type,
        ).model_dump()
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
