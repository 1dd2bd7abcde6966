"""Sliding-window rate limiting for expensive generation endpoints.

Each limiter tracks, per caller key, the timestamps of admitted requests.
A request is admitted when fewer than `max_requests` admitted requests fall
inside the trailing window; otherwise it is rejected immediately.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import Depends, Request

from core import config
from core.auth import Identity, get_optional_identity
from core.exceptions import RateLimitExceededError
from core.logger import get_logger

logger = get_logger("core.rate_limiter")


class SlidingWindowRateLimiter:
    """Per-key sliding-window limiter.

    Args:
        name: Label used in logs.
        max_requests: Requests admitted per window.
        window_seconds: Length of the trailing window.
        message: Rejection message returned to clients.
        code: Rejection reason code.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float,
        message: str,
        code: str = "RATE_LIMIT_EXCEEDED",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self.code = code
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _prune(self, hits: Deque[float], now: float) -> None:
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

    def _evict_idle(self, now: float) -> None:
        """Drop keys with no hit left in the window, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def hit(self, key: str) -> None:
        """Admit a request for `key` or raise.

        Raises:
            RateLimitExceededError: When the window is full; `retry_after`
                is the number of seconds until the oldest hit leaves it.
        """
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            hits = self._hits.setdefault(key, deque())
            self._prune(hits, now)
            if len(hits) >= self.max_requests:
                retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
                logger.warning("Rate limit %s exceeded for %s (retry in %ss)", self.name, key, retry_after)
                raise RateLimitExceededError(self.message, code=self.code, retry_after=retry_after)
            hits.append(now)

    def remaining(self, key: str) -> int:
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return self.max_requests
            self._prune(hits, self._clock())
            if not hits:
                del self._hits[key]
                return self.max_requests
            return max(0, self.max_requests - len(hits))

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


plan_generation_limiter = SlidingWindowRateLimiter(
    "plan_generation",
    config.PLAN_GENERATION_MAX_REQUESTS,
    config.PLAN_GENERATION_WINDOW_SECONDS,
    message="Too many plan generation requests. Please wait 2 minutes before trying again.",
    code="RATE_LIMIT_EXCEEDED",
)

ai_operation_limiter = SlidingWindowRateLimiter(
    "ai_operation",
    config.AI_OPERATION_MAX_REQUESTS,
    config.AI_OPERATION_WINDOW_SECONDS,
    message="AI operation limit reached. Please wait 10 minutes before generating more plans.",
    code="AI_RATE_LIMIT_EXCEEDED",
)


def rate_limit_key(request: Request, identity: Optional[Identity]) -> str:
    """Authenticated user id, else the client address, else `unknown`."""
    if identity is not None:
        return f"user:{identity.user_id}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return "unknown"


def enforce(limiter: SlidingWindowRateLimiter):
    """Build a FastAPI dependency that admits the request through `limiter`."""

    def dependency(request: Request, identity: Optional[Identity] = Depends(get_optional_identity)) -> None:
        limiter.hit(rate_limit_key(request, identity))

    return dependency
