"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ExpenseGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Route
      handlers receive it through Depends(get_settings), so tests swap it with
      app.dependency_overrides instead of mutating the environment.

  Layered .env files: .env, .env.<APP_ENV>, .env.local, .env.<APP_ENV>.local.
      Later files override earlier ones and real environment variables
      override every file. Files that do not exist are skipped silently.

Missing secrets never stop the process. The login endpoint reports
"not configured" and the token endpoint reports a configuration error instead,
so an operator can bring the server up, hit /api/health and see what is
missing.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or sheets/.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("expensegate.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """Convert "3600", "30m", "1h" or "7d" into a number of seconds.

    Raises ValueError for anything else, including zero.
    """
    if isinstance(value, int):
        seconds = value
    else:
        match = _DURATION_RE.match(value)
        if not match:
            raise ValueError(f"Invalid duration {value!r}. Use seconds or a value like 30m, 1h, 7d.")
        seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
    if seconds <= 0:
        raise ValueError("Duration must be positive.")
    return seconds


def env_files_for(app_env: str, base_dir: Path = _PROJECT_ROOT) -> list[Path]:
    """Return the .env files that exist for app_env, lowest priority first."""
    names = (".env", f".env.{app_env}", ".env.local", f".env.{app_env}.local")
    return [base_dir / name for name in names if (base_dir / name).is_file()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files.

    Every field has a default so Settings() works in test environments and on
    a half-configured server. Field names map to upper-case env var names
    (auth_username -> AUTH_USERNAME).
    """

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_env: str = "development"
    debug: bool = False
    port: int = 4000
    allowed_hosts: str = "*"
    cors_origins: str = "*"
    frontend_dist_dir: str = ""

    # ------------------------------------------------------------------
    # Operator account and session tokens
    # ------------------------------------------------------------------

    auth_username: str = ""
    auth_password_hash: str = ""
    jwt_secret: str = ""
    jwt_expires_in: str = "1h"

    # ------------------------------------------------------------------
    # Login rate limiting
    # ------------------------------------------------------------------

    max_login_attempts: int = 5
    login_window_minutes: int = 15

    # ------------------------------------------------------------------
    # CSRF and cookies
    # ------------------------------------------------------------------

    csrf_enabled: bool = False
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Google service account and spreadsheet
    # ------------------------------------------------------------------

    service_account_email: str = ""
    # Single-line transport form: literal "\n" sequences stand for newlines.
    service_account_private_key: str = ""
    spreadsheet_id: str = ""
    google_token_requires_auth: bool = True
    token_rate_limit: str = "30/minute"
    token_exchange_timeout: float = 10.0
    sheets_timeout: float = 15.0
    categories_range: str = "Справочники!B2:B"
    authors_range: str = "Справочники!E2:E"
    expenses_range: str = "Расходы!A1"

    # Filled in by get_settings(); reported by /api/env-info.
    loaded_env_files: list[str] = []

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_expires_in")
    @classmethod
    def validate_jwt_expires_in(cls, value: str) -> str:
        parse_duration(value)
        return value

    @field_validator("max_login_attempts", "login_window_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def jwt_lifetime_seconds(self) -> int:
        return parse_duration(self.jwt_expires_in)

    @property
    def login_window_seconds(self) -> int:
        return self.login_window_minutes * 60

    @property
    def auth_configured(self) -> bool:
        """True when the operator account and signing secret are all present."""
        return bool(self.auth_username and self.auth_password_hash and self.jwt_secret)

    @property
    def service_account_configured(self) -> bool:
        return bool(self.service_account_email and self.service_account_private_key)

    @property
    def service_account_key(self) -> str:
        """The private key PEM with escaped newline sequences restored."""
        return self.service_account_private_key.replace("\\n", "\n")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def allowed_host_list(self) -> list[str]:
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]

    def log_configuration_status(self) -> None:
        """Log which groups of settings are present. Never logs values."""
        logger.info("Environment: %s", self.app_env)
        logger.info("Env files loaded: %s", ", ".join(self.loaded_env_files) or "none")
        logger.info("Operator login: %s", "configured" if self.auth_configured else "missing")
        logger.info("Spreadsheet ID: %s", "configured" if self.spreadsheet_id else "missing")
        logger.info("Service Account Email: %s", "configured" if self.service_account_email else "missing")
        logger.info(
            "Service Account Private Key: %s",
            "configured" if self.service_account_private_key else "missing",
        )
        if not self.auth_configured:
            logger.warning("AUTH_USERNAME, AUTH_PASSWORD_HASH or JWT_SECRET missing -- login is disabled")


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    APP_ENV is read before the Settings object exists because it decides
    which .env files to load.

    In tests: override with app.dependency_overrides[get_settings], or call
    get_settings.cache_clear() after changing the environment.
    """
    app_env = os.environ.get("APP_ENV", "development")
    files = env_files_for(app_env)
    settings = Settings(_env_file=files or None)
    settings.loaded_env_files = [str(f) for f in files]
    return settings
