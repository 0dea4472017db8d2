"""
auth/tokens.py -- Password verification and session token issue/verify.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET and carry
       sub, username, iat and exp. decode_session_token() collapses every
       failure (bad signature, malformed, expired, missing claims) into
       InvalidOrExpiredToken so a client cannot tell which check failed.

  Passwords: bcrypt directly. There is exactly one account; its hash comes
       from AUTH_PASSWORD_HASH. The _DUMMY_HASH constant lets issue() run
       bcrypt even when the username is wrong, so response time does not
       reveal whether the username matched.

  No server-side session state. Logout is the client discarding the token;
  expiry is the only revocation.

Layer rule: no imports from api/ or sheets/.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from core.config import Settings
from core.errors import ConfigurationError, InvalidCredentials, InvalidOrExpiredToken
from core.models import IssuedToken, Principal

logger = logging.getLogger("expensegate.auth")

_ALGORITHM = "HS256"

# bcrypt rejects (5.x) or silently truncates (4.x) anything longer.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Used by `main.py hash-password` to produce AUTH_PASSWORD_HASH. Raises
    ValueError for passwords over MAX_PASSWORD_BYTES in UTF-8.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash counts as a mismatch. A password longer than
    MAX_PASSWORD_BYTES cannot have been hashed, so it never matches.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        logger.error("AUTH_PASSWORD_HASH is not a valid bcrypt hash")
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("expensegate_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_session_token(
    username: str,
    secret: str,
    lifetime_seconds: int,
    now: Optional[datetime] = None,
) -> IssuedToken:
    """Sign a session token for username, valid for lifetime_seconds from now.

    `now` exists for tests that need a token which is already expired.
    """
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued_at + timedelta(seconds=lifetime_seconds)
    payload = {
        "sub": username,
        "username": username,
        "iat": issued_at,
        "exp": expires_at,
    }
    token = jwt.encode(payload, secret, algorithm=_ALGORITHM)
    return IssuedToken(token=token, username=username, issued_at=issued_at, expires_at=expires_at)


def decode_session_token(token: str, secret: str) -> Principal:
    """Verify signature and expiry; return the Principal or raise InvalidOrExpiredToken."""
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"require_exp": True})
    except JWTError:
        raise InvalidOrExpiredToken() from None
    username = payload.get("username")
    if not isinstance(username, str) or not username:
        raise InvalidOrExpiredToken()
    return Principal(
        username=username,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


# ---------------------------------------------------------------------------
# Operator login (constant-path)
# ---------------------------------------------------------------------------


def issue(settings: Settings, username: str, password: str) -> IssuedToken:
    """Check the operator credentials and return a signed session token.

    Raises ConfigurationError when the operator account or JWT secret is not
    set, and InvalidCredentials for any wrong username/password combination.
    bcrypt always runs once, against the dummy hash when the username is
    wrong, so both failure paths cost the same.
    """
    if not settings.auth_configured:
        logger.error("Login attempted but AUTH_USERNAME, AUTH_PASSWORD_HASH or JWT_SECRET is not set")
        raise ConfigurationError("Authentication is not configured")

    username_ok = hmac.compare_digest(username.encode("utf-8"), settings.auth_username.encode("utf-8"))
    hashed = settings.auth_password_hash if username_ok else _DUMMY_HASH
    password_ok = verify_password(password, hashed)
    if not (username_ok and password_ok):
        logger.info("Rejected login attempt")
        raise InvalidCredentials()

    logger.info("Issued session token for %s", settings.auth_username)
    return create_session_token(settings.auth_username, settings.jwt_secret, settings.jwt_lifetime_seconds)
