"""
core/errors.py -- Error taxonomy shared by auth/, sheets/ and api/.

Domain code raises these; api/main.py maps them to HTTP responses in one
exception handler. Each error carries a public message that is safe to show a
client. Internal detail (stack traces, upstream response bodies, key parse
errors) goes to the log at the raise site and never into the exception's
public message.

Layer rule: no framework imports here.
"""

from __future__ import annotations

from typing import Optional

from core.models import RateLimitDecision


class AppError(Exception):
    """Base class. Subclasses set the default status, code and message."""

    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigurationError(AppError):
    """A required secret or setting is missing."""

    code = "not_configured"
    message = "Server is not configured."


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class InvalidCredentials(AuthenticationError):
    # Same message for a wrong username and a wrong password.
    code = "bad_credentials"
    message = "Invalid username or password"


class MissingToken(AuthenticationError):
    code = "missing_token"
    message = "Access denied. No token provided."


class InvalidOrExpiredToken(AuthenticationError):
    status_code = 403
    code = "invalid_token"
    message = "Invalid or expired token"


class CsrfError(AppError):
    status_code = 403
    code = "csrf_failed"
    message = "Invalid CSRF token"


class RateLimitError(AppError):
    status_code = 429
    code = "rate_limited"
    message = "Too many login attempts. Please try again later."

    def __init__(self, decision: RateLimitDecision, message: Optional[str] = None) -> None:
        self.decision = decision
        super().__init__(message)


class UpstreamError(AppError):
    """A call to Google (token endpoint or Sheets API) failed."""

    code = "upstream_error"
    message = "Upstream service request failed."
