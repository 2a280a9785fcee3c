"""Fixed-window request rate limiter."""
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateLimitDecision:
    """Result of counting one request against the limiter."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # Seconds until the window resets

    def headers(self) -> Dict[str, str]:
        """Standard RateLimit-* response headers."""
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class FixedWindowRateLimiter:
    """
    Counts requests per key (client address) in fixed windows.

    Each key gets `limit` requests per `window` seconds; the window starts
    at the key's first request.
    """

    def __init__(
        self,
        limit: int,
        window: float,
        message: str = "Too many requests, please try again later",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window = window
        self.message = message
        self._clock = clock
        self._windows: Dict[str, tuple] = {}  # key -> (window_start, count)

    def hit(self, key: str) -> RateLimitDecision:
        """Count a request for key and decide whether it may proceed."""
        now = self._clock()
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window:
            window_start, count = now, 0

        count += 1
        self._windows[key] = (window_start, count)
        self._prune(now)

        reset_after = max(0, math.ceil(window_start + self.window - now))
        return RateLimitDecision(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_after=reset_after,
        )

    def reset(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [
            key for key, (start, _) in self._windows.items() if now - start >= self.window
        ]
        for key in expired:
            del self._windows[key]
