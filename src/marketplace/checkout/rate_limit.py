"""Sliding-window rate limiting for checkout attempts."""

import math
import threading
import time

import structlog

from marketplace.exceptions import RateLimitExceeded

logger = structlog.get_logger(__name__)


class CheckoutRateLimiter:
    """In-memory sliding-window limiter keyed by buyer.

    Held by the service container rather than at module level, so every test
    and every app instance gets its own window state. ``clock`` returns
    seconds and can be replaced in tests.
    """

    def __init__(self, max_requests: int = 10, window_seconds: int = 60, clock=time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: dict[str, list[float]] = {}
        self._last_sweep = clock()

    def is_allowed(self, key: str) -> bool:
        """Record an attempt for ``key`` and report whether it is within the limit."""
        return self._retry_after(key) == 0

    def _retry_after(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            # Clean old timestamps
            requests = [ts for ts in self._requests.get(key, []) if now - ts < self.window_seconds]
            if len(requests) < self.max_requests:
                requests.append(now)
                self._requests[key] = requests
                return 0
            self._requests[key] = requests
            return max(1, math.ceil(self.window_seconds - (now - requests[0])))

    def check(self, key: str) -> None:
        """Raise RateLimitExceeded when ``key`` is over its limit."""
        retry_after = self._retry_after(key)
        if retry_after:
            logger.warning("Checkout rate limit exceeded", buyer=key, retry_after=retry_after)
            raise RateLimitExceeded(key, retry_after)

    def _sweep(self, now: float) -> None:
        for key in list(self._requests):
            if all(now - ts >= self.window_seconds for ts in self._requests[key]):
                del self._requests[key]
        self._last_sweep = now

    def prune(self) -> None:
        """Drop buyers whose window holds no attempts."""
        with self._lock:
            self._sweep(self._clock())

    def __len__(self) -> int:
        return len(self._requests)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)
