from __future__ import annotations

import pytest
from fastapi import HTTPException

from creditledger.core.rate_limiter import FixedWindowLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_limit_then_window_resets():
    clock = FakeClock()
    limiter = FixedWindowLimiter(clock=clock)

    for _ in range(3):
        limiter.hit("auth:login:10.0.0.1", 3, 60)
    with pytest.raises(HTTPException) as excinfo:
        limiter.hit("auth:login:10.0.0.1", 3, 60)
    assert excinfo.value.status_code == 429
    assert excinfo.value.headers["Retry-After"] == "60"

    limiter.hit("auth:login:10.0.0.2", 3, 60)

    clock.now += 61
    limiter.hit("auth:login:10.0.0.1", 3, 60)


def test_expired_windows_are_evicted():
    clock = FakeClock()
    limiter = FixedWindowLimiter(clock=clock, sweep_threshold=10)

    for n in range(10):
        limiter.hit(f"auth:forgot:203.0.113.{n}", 5, 30)
    assert limiter.tracked_keys() == 10

    clock.now += 31
    limiter.hit("auth:forgot:198.51.100.7", 5, 30)
    assert limiter.tracked_keys() == 1


def test_live_windows_survive_sweep():
    clock = FakeClock()
    limiter = FixedWindowLimiter(clock=clock, sweep_threshold=3)

    limiter.hit("old", 1, 10)
    clock.now += 5
    limiter.hit("fresh", 1, 60)
    limiter.hit("other", 1, 60)
    clock.now += 6
    limiter.hit("new", 1, 60)

    assert limiter.tracked_keys() == 3
    with pytest.raises(HTTPException):
        limiter.hit("fresh", 1, 60)
