"""
auth/csrf.py -- Double-submit CSRF tokens.

GET /api/csrf-token hands out a random token and sets the same value in a
readable cookie. A protected POST must echo the token in X-CSRF-Token; a
cross-site page can make the browser send the cookie but cannot read it to
build the header.
"""

from __future__ import annotations

import hmac
import secrets
from typing import Optional

from core.errors import CsrfError

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
CSRF_COOKIE_MAX_AGE = 60 * 60 * 24 * 7

SAFE_METHODS: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def verify_csrf(cookie_value: Optional[str], header_value: Optional[str]) -> None:
    cookie = (cookie_value or "").strip()
    header = (header_value or "").strip()
    if not cookie or not header or not hmac.compare_digest(cookie.encode("utf-8"), header.encode("utf-8")):
        raise CsrfError()
