"""Fixed-window rate limiter.

A counter per key is reset at fixed boundaries (``reset_at``) rather than
sliding continuously. Up to ``2 * limit`` requests can therefore pass across
the edge of two adjacent windows; this is accepted behaviour.
"""

import math
import time
from typing import Callable

from mindbridge.app.middleware.rate_limit.models import (
    LimitPolicy,
    RateLimitResult,
    RateWindow,
)
from mindbridge.app.middleware.rate_limit.store import WindowStore

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def retry_after_seconds(reset_at: int, now: int) -> int:
    """Whole seconds until ``reset_at``, rounded up."""
    return max(0, math.ceil((reset_at - now) / 1000))


class FixedWindowLimiter:
    """Decides whether a request for a key is allowed under a policy.

    Usage:
        limiter = FixedWindowLimiter(InMemoryWindowStore())
        result = limiter.decide("1.2.3.4", LimitPolicy(limit=3, window_ms=1000))
        if not result.allowed:
            ...
    """

    def __init__(self, store: WindowStore, clock: Clock = now_ms):
        self.store = store
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def decide(self, key: str, policy: LimitPolicy) -> RateLimitResult:
        """Count a request for ``key`` and return the decision.

        A request landing exactly on ``reset_at`` opens a fresh window.
        Denied requests do not increment the counter.
        """
        with self.store.lock:
            now = self._clock()
            window = self.store.get(key)

            if window is None or window.reset_at <= now:
                window = RateWindow(key=key, count=1, reset_at=now + policy.window_ms)
                self.store.set(key, window)
                return RateLimitResult(
                    allowed=True,
                    limit=policy.limit,
                    remaining=policy.limit - 1,
                    reset_at=window.reset_at,
                )

            if window.count >= policy.limit:
                return RateLimitResult(
                    allowed=False,
                    limit=policy.limit,
                    remaining=0,
                    reset_at=window.reset_at,
                    retry_after=retry_after_seconds(window.reset_at, now),
                )

            window.count += 1
            self.store.set(key, window)
            return RateLimitResult(
                allowed=True,
                limit=policy.limit,
                remaining=policy.limit - window.count,
                reset_at=window.reset_at,
            )
