"""
api/main.py -- FastAPI application entry point for ExpenseGate.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan builds the process-wide objects the routes share and puts them on
app.state: the login rate limiter and the pooled requests.Session used for
Google calls. Nothing else is global; tests replace the lifespan to inject
their own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from api.limiter import limiter
from api.models import EnvInfoResponse, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.sheets import router as sheets_router
from auth.delegated import new_http_session
from auth.ratelimit import LoginRateLimiter
from core.config import Settings, get_settings
from core.errors import AppError, RateLimitError

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("expensegate.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the per-process state on startup and release it on shutdown."""
    settings = get_settings()
    logger.info("ExpenseGate API starting up")
    settings.log_configuration_status()
    app.state.login_limiter = LoginRateLimiter.from_settings(settings)
    logger.info(
        "Login rate limit: %d attempts per %d minutes",
        settings.max_login_attempts,
        settings.login_window_minutes,
    )
    app.state.http = new_http_session()

    yield

    app.state.http.close()
    logger.info("ExpenseGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ExpenseGate API",
    description="Operator login and Google Sheets access for the expense entry form.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_host_list(),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list(),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    max_age=3600,
)

# slowapi looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(sheets_router, prefix="/api", tags=["Sheets"])
# The built web client is mounted by asgi.py, after every /api route.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so the web client can
# show `message` without inspecting status codes.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map the domain error taxonomy to HTTP.

    Only exc.message reaches the client; the raise site has already logged
    any internal detail. Login failures keep the X-RateLimit-* headers of the
    attempt that was counted.
    """
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.build(exc.code, exc.message).model_dump(),
    )
    if isinstance(exc, RateLimitError):
        response.headers.update(exc.decision.headers())
    else:
        decision = getattr(request.state, "rate_limit", None)
        if decision is not None:
            response.headers.update(decision.headers())
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a slowapi route limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse.build("rate_limited", "Too many requests.", detail=str(exc.detail)).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


# Submitted values (a login password, for instance) must not be echoed back.
_REDACTED_ERROR_KEYS = ("input", "ctx")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    Only the location, type and message of each error are reported.
    """
    errors = [{k: v for k, v in err.items() if k not in _REDACTED_ERROR_KEYS} for err in exc.errors()]
    response = JSONResponse(
        status_code=422,
        content=ErrorResponse.build(
            "validation_error",
            "Request validation failed.",
            detail=str(errors),
        ).model_dump(),
    )
    decision = getattr(request.state, "rate_limit", None)
    if decision is not None:
        response.headers.update(decision.headers())
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.build(f"http_{exc.status_code}", str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse.build("internal_error", "An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health and environment info
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Return liveness plus which integrations are configured."""

    def _status(ok: bool) -> str:
        return "configured" if ok else "missing"

    return HealthResponse(
        version=VERSION,
        components={
            "app": "ok",
            "auth": _status(settings.auth_configured),
            "service_account": _status(settings.service_account_configured),
            "spreadsheet": _status(bool(settings.spreadsheet_id)),
        },
    )


@app.get("/api/env-info", tags=["Health"])
def env_info(settings: Settings = Depends(get_settings)) -> EnvInfoResponse:
    """Summarize non-secret configuration. Not available in production."""
    if settings.is_production:
        raise HTTPException(status_code=404, detail="Not Found")
    return EnvInfoResponse(
        app_env=settings.app_env,
        port=settings.port,
        spreadsheet_id=settings.spreadsheet_id,
        service_account_email=settings.service_account_email,
        has_service_account_private_key=bool(settings.service_account_private_key),
        auth_configured=settings.auth_configured,
        loaded_env_files=settings.loaded_env_files,
    )
