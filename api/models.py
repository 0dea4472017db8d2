"""
API request and response models for the ExpenseGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in core/models.py, which own the
internal domain representation. Route handlers map between the two.

Field names are snake_case in Python and camelCase on the wire (the web
client was written against token / expiresIn / csrfToken). The Google token
response keeps OAuth's own snake_case names (access_token, expires_in).
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.models import DEFAULT_AUTHOR, ExpenseRow


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class ExpenseCreate(BaseModel):
    """Request body for POST /api/expenses.

    Mirrors the rules of the expense form: the date cannot be in the future,
    the amount is at least 0.01, the comment is at most 500 characters.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    date: dt.date
    category: str = Field(min_length=1, max_length=255)
    amount: float = Field(ge=0.01)
    comment: str = Field(default="", max_length=500)
    author: str = Field(default=DEFAULT_AUTHOR, min_length=1, max_length=255)

    @field_validator("date")
    @classmethod
    def not_in_future(cls, value: dt.date) -> dt.date:
        if value > dt.date.today():
            raise ValueError("date cannot be in the future")
        return value

    def to_row(self) -> ExpenseRow:
        return ExpenseRow(
            date=self.date,
            category=self.category,
            amount=self.amount,
            comment=self.comment,
            author=self.author,
        )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(_CamelModel):
    success: bool = True
    token: str
    expires_in: int


class ProtectedResponse(_CamelModel):
    success: bool = True
    user: str


class SessionResponse(_CamelModel):
    """Response for GET /api/auth/session -- the server-side answer to "is my token still good"."""

    success: bool = True
    user: str
    expires_at: str


class LogoutResponse(_CamelModel):
    success: bool = True
    message: str = "Logged out."


class GoogleTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class CsrfTokenResponse(_CamelModel):
    csrf_token: str


class OptionsResponse(_CamelModel):
    success: bool = True
    categories: list[str]
    authors: list[str]


class ExpenseCreatedResponse(_CamelModel):
    success: bool = True
    updated_range: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


class EnvInfoResponse(BaseModel):
    """Response for GET /api/env-info. Presence flags only for secrets."""

    model_config = ConfigDict(frozen=True)

    app_env: str
    port: int
    spreadsheet_id: str
    service_account_email: str
    has_service_account_private_key: bool
    auth_configured: bool
    loaded_env_files: list[str]


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    success/message are what the web client displays; error carries the
    machine-readable code.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    error: ErrorDetail

    @classmethod
    def build(cls, code: str, message: str, detail: Optional[str] = None) -> "ErrorResponse":
        return cls(message=message, error=ErrorDetail(code=code, message=message, detail=detail))
