"""
api/limiter.py -- Shared slowapi rate limiter instance.

Guards POST /api/auth/google-token: every call performs a signed exchange
with Google, so an open or leaked caller must not be able to hammer it.
Login attempts are counted separately by auth.ratelimit.LoginRateLimiter,
which needs its own window semantics and response metadata.

Using a single shared instance ensures all decorated routes share the same
in-memory counter store. api/main.py attaches it to app.state.limiter, where
slowapi looks for it by convention.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
