"""
auth/ratelimit.py -- Fixed-window login attempt limiter.

One LoginRateLimiter is built at startup and kept on app.state. It wraps the
`limits` fixed-window strategy (the backend slowapi uses) over its own
in-memory storage, so tests get a fresh, isolated counter per app instance.
admit() holds a lock across the hit and the window read so a burst from one
address in the thread pool admits exactly max_attempts and reports matching
metadata.

The login route cannot use the @limiter.limit decorator: a rejected attempt
must become a RateLimitError carrying the window metadata, and successful
responses must report the remaining attempts.

Counters live in process memory. Running several server processes gives each
one its own counters -- fine for the single-instance deployment this serves.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Optional

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from core.config import Settings
from core.errors import RateLimitError
from core.models import RateLimitDecision

_NAMESPACE = "login"


class LoginRateLimiter:
    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        if max_attempts < 1 or window_seconds < 1:
            raise ValueError("max_attempts and window_seconds must be positive")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoginRateLimiter":
        return cls(settings.max_login_attempts, settings.login_window_seconds)

    @property
    def item(self) -> RateLimitItem:
        """max_attempts per window_seconds, e.g. 5 per 900 seconds."""
        return RateLimitItemPerSecond(self.max_attempts, self.window_seconds, namespace=_NAMESPACE)

    def admit(self, client_address: str) -> RateLimitDecision:
        """Count one attempt for client_address.

        Returns the decision (with header metadata) when admitted; raises
        RateLimitError once max_attempts have been used in the current window.
        """
        item = self.item
        with self._lock:
            admitted = self._strategy.hit(item, client_address)
            reset_at, remaining = self._strategy.get_window_stats(item, client_address)

        if not admitted:
            raise RateLimitError(
                RateLimitDecision(
                    limit=self.max_attempts,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=max(1, math.ceil(reset_at - time.time())),
                )
            )
        return RateLimitDecision(limit=self.max_attempts, remaining=remaining, reset_at=reset_at)

    def reset(self, client_address: Optional[str] = None) -> None:
        """Forget one address, or every address when called with no argument."""
        if client_address is None:
            self._storage.reset()
        else:
            self._strategy.clear(self.item, client_address)
