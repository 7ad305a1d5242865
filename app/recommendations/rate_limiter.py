"""
Sliding-window rate limiter for the recommendation endpoints.

State lives on the instance (a map from key to the timestamps inside the
current window) and time comes from an injected clock, so each app gets its
own limiter and tests can drive it with a fake clock.
"""

import logging
import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict

from .models import RateLimitResult

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Allows at most ``max_requests`` per key within any ``window_seconds`` span.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize SlidingWindowRateLimiter.

        Args:
            max_requests: Requests allowed per key within the window
            window_seconds: Length of the sliding window
            clock: Returns the current time in seconds
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = Lock()

    def check_and_consume(self, key: str) -> RateLimitResult:
        """
        Record a request for ``key`` if it is under the limit.

        Args:
            key: Caller identity, e.g. "user:{uid}" or "ip:{address}"

        Returns:
            RateLimitResult with allowed status and details
        """
        with self._lock:
            now = self.clock()
            self._clean_old_entries(now)
            hits = self._prune(key, now)

            if len(hits) >= self.max_requests:
                retry_after = max(0.0, hits[0] + self.window_seconds - now)
                logger.info(f"Rate limit hit: key={key}, retry_after={retry_after:.1f}s")
                return RateLimitResult(allowed=False, key=key, remaining=0, retry_after=retry_after)

            hits.append(now)
            self._hits[key] = hits
            return RateLimitResult(
                allowed=True,
                key=key,
                remaining=self.max_requests - len(hits),
            )

    def check_only(self, key: str) -> RateLimitResult:
        """Report the current state for ``key`` without consuming."""
        with self._lock:
            hits = self._prune(key, self.clock())
            remaining = max(0, self.max_requests - len(hits))
            return RateLimitResult(allowed=remaining > 0, key=key, remaining=remaining)

    def reset(self, key: str = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def _prune(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits for ``key``; a key left with no hits is forgotten."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _clean_old_entries(self, now: float) -> None:
        """Remove keys whose every hit has left the window, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        if stale:
            logger.debug(f"Rate limiter dropped {len(stale)} idle keys")
