"""Tests for the sliding-window rate limiter."""
import pytest
from starlette.requests import Request

from core.auth import Identity
from core.exceptions import RateLimitExceededError
from core.rate_limiter import (
    SlidingWindowRateLimiter,
    ai_operation_limiter,
    enforce,
    plan_generation_limiter,
    rate_limit_key,
)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _limiter(clock, max_requests=2, window=120):
    return SlidingWindowRateLimiter("test", max_requests, window, "Too many requests", "TEST_LIMIT", clock=clock)


def _request(client=("10.0.0.1", 5000)):
    return Request({"type": "http", "method": "POST", "path": "/", "headers": [], "client": client})


def test_rejects_once_window_is_full():
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.hit("user:1")
    clock.now = 1.0
    limiter.hit("user:1")

    clock.now = 2.0
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.hit("user:1")
    assert exc_info.value.status_code == 429
    assert exc_info.value.code == "TEST_LIMIT"
    assert exc_info.value.retry_after == 118
    assert limiter.remaining("user:1") == 0


def test_window_slides_instead_of_resetting():
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.hit("k")
    clock.now = 60.0
    limiter.hit("k")

    clock.now = 120.0
    limiter.hit("k")
    with pytest.raises(RateLimitExceededError):
        limiter.hit("k")

    clock.now = 180.0
    limiter.hit("k")


def test_rejected_requests_do_not_consume_quota():
    clock = FakeClock()
    limiter = _limiter(clock, max_requests=1, window=10)
    limiter.hit("k")
    for _ in range(5):
        with pytest.raises(RateLimitExceededError):
            limiter.hit("k")
    clock.now = 10.0
    limiter.hit("k")


def test_keys_are_independent_and_resettable():
    limiter = _limiter(FakeClock(), max_requests=1)
    limiter.hit("user:1")
    limiter.hit("user:2")
    with pytest.raises(RateLimitExceededError):
        limiter.hit("user:1")

    limiter.reset("user:1")
    limiter.hit("user:1")
    limiter.reset()
    assert limiter.remaining("user:2") == 1


def test_configured_limiters():
    assert (plan_generation_limiter.max_requests, plan_generation_limiter.window_seconds) == (2, 120)
    assert plan_generation_limiter.code == "RATE_LIMIT_EXCEEDED"
    assert (ai_operation_limiter.max_requests, ai_operation_limiter.window_seconds) == (5, 600)
    assert ai_operation_limiter.code == "AI_RATE_LIMIT_EXCEEDED"


def test_key_prefers_identity_then_address():
    assert rate_limit_key(_request(), Identity(user_id=7)) == "user:7"
    assert rate_limit_key(_request(), None) == "ip:10.0.0.1"
    assert rate_limit_key(_request(client=None), None) == "unknown"


def test_enforce_dependency_hits_limiter():
    limiter = _limiter(FakeClock(), max_requests=1)
    dependency = enforce(limiter)

    dependency(_request(), Identity(user_id=3))
    with pytest.raises(RateLimitExceededError):
        dependency(_request(client=("10.0.0.9", 1)), Identity(user_id=3))
    dependency(_request(client=("10.0.0.9", 1)), None)


def test_idle_keys_are_evicted():
    clock = FakeClock()
    limiter = _limiter(clock, window=60)
    limiter.hit("ip:10.0.0.1")
    limiter.hit("ip:10.0.0.2")
    clock.now = 30.0
    limiter.hit("ip:10.0.0.2")

    clock.now = 75.0
    limiter.hit("ip:10.0.0.3")

    assert set(limiter._hits) == {"ip:10.0.0.2", "ip:10.0.0.3"}
    assert limiter.remaining("ip:10.0.0.1") == 2

    clock.now = 100.0
    assert limiter.remaining("ip:10.0.0.2") == 2
    assert "ip:10.0.0.2" not in limiter._hits
