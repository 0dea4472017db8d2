"""
auth/delegated.py -- Short-lived Google access tokens for the service account.

The browser needs to call the Sheets API, but must never see the service
account's private key. This module runs the service-account grant on the
browser's behalf with google-auth:

  1. Build service_account.Credentials from SERVICE_ACCOUNT_EMAIL and the
     private key, scoped to spreadsheets only.
  2. refresh() them over the shared requests.Session, which signs the
     assertion and exchanges it at Google's token endpoint.
  3. Hand back the resulting access token and its expiry unchanged.

The token lives about an hour, which bounds what a leaked copy can do.
Nothing is cached: every mint() builds fresh credentials. Failures are logged
here in full and re-raised as generic UpstreamError / ConfigurationError so
the route never leaks detail.

Layer rule: no imports from api/ or sheets/.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone

import requests
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from core.config import Settings
from core.errors import ConfigurationError, UpstreamError
from core.models import DelegatedAccessToken

logger = logging.getLogger("expensegate.delegated")

TOKEN_URI = "https://oauth2.googleapis.com/token"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


def new_http_session() -> requests.Session:
    """Session shared by the minter and the sheet gateway for connection pooling.

    max_redirects=3 replaces the requests default of 30 -- both endpoints are
    fixed Google APIs that never legitimately redirect more than that.
    """
    session = requests.Session()
    session.max_redirects = 3
    return session


class DelegatedTokenMinter:
    def __init__(
        self,
        email: str,
        private_key: str,
        session: requests.Session,
        *,
        scope: str = SHEETS_SCOPE,
        token_uri: str = TOKEN_URI,
        timeout: float = 10.0,
    ) -> None:
        self.email = email
        self.private_key = private_key
        self.scope = scope
        self.token_uri = token_uri
        self.timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings: Settings, session: requests.Session) -> "DelegatedTokenMinter":
        return cls(
            settings.service_account_email,
            settings.service_account_key,
            session,
            timeout=settings.token_exchange_timeout,
        )

    def credentials(self) -> service_account.Credentials:
        """Unrefreshed credentials for the service account. Raises ValueError on a bad key."""
        info = {
            "client_email": self.email,
            "private_key": self.private_key,
            "token_uri": self.token_uri,
        }
        return service_account.Credentials.from_service_account_info(info, scopes=[self.scope])

    def mint(self) -> DelegatedAccessToken:
        """Exchange a freshly signed assertion for an access token."""
        if not self.email or not self.private_key:
            logger.error(
                "Missing service account credentials: SERVICE_ACCOUNT_EMAIL=%s SERVICE_ACCOUNT_PRIVATE_KEY=%s",
                bool(self.email),
                bool(self.private_key),
            )
            raise ConfigurationError("Service account credentials not configured")

        try:
            creds = self.credentials()
        except ValueError as exc:
            logger.error("Could not load service account private key: %s", exc)
            raise UpstreamError("Failed to generate access token") from exc

        # google-auth's default transport timeout is 120s; bound the exchange here.
        request = functools.partial(Request(self._session), timeout=self.timeout)
        try:
            creds.refresh(request)
        except (google_exceptions.GoogleAuthError, TypeError, ValueError) as exc:
            # RefreshError: rejected grant or no access_token. TransportError:
            # network failure. TypeError, ValueError: a non-JSON body or a
            # malformed expires_in.
            logger.error("Token exchange with %s failed: %s", self.token_uri, exc)
            raise UpstreamError("Failed to generate access token") from exc

        if not creds.token:
            logger.error("Token endpoint returned an empty access token")
            raise UpstreamError("Failed to generate access token")

        expires_at = creds.expiry
        if expires_at is None:
            logger.error("Token endpoint response has no expires_in")
            raise UpstreamError("Failed to generate access token")
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        expires_in = max(0, round((expires_at - datetime.now(timezone.utc)).total_seconds()))

        logger.info("Minted spreadsheet access token for %s (expires in %ds)", self.email, expires_in)
        return DelegatedAccessToken(value=creds.token, expires_at=expires_at, expires_in=expires_in)
