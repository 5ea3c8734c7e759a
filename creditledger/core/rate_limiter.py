"""Per-IP fixed-window throttling for the public auth endpoints."""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import HTTPException, Request

SWEEP_THRESHOLD = 1024


@dataclass
class _Window:
    hits: int
    expires_at: float


class FixedWindowLimiter:
    """
    Counts hits per key inside a fixed window. Expired windows are evicted
    once the table grows past `sweep_threshold`, so rotating client
    addresses cannot grow it without bound.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_threshold: int = SWEEP_THRESHOLD) -> None:
        self._clock = clock
        self._sweep_threshold = sweep_threshold
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> None:
        """Record one hit for key; raises 429 when the window already holds `limit` hits."""
        now = self._clock()
        with self._lock:
            if len(self._windows) >= self._sweep_threshold:
                self._evict_expired(now)
            window = self._windows.get(key)
            if window is None or window.expires_at <= now:
                window = _Window(hits=0, expires_at=now + window_seconds)
                self._windows[key] = window
            window.hits += 1
            if window.hits > limit:
                retry_after = max(1, math.ceil(window.expires_at - now))
                raise HTTPException(
                    429,
                    "Demasiadas solicitudes. Intenta de nuevo en unos instantes.",
                    headers={"Retry-After": str(retry_after)},
                )

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.expires_at <= now]
        for key in expired:
            del self._windows[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_limiter = FixedWindowLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    _limiter.hit(f"{scope}:{client_ip(request)}", limit, window_seconds)


def reset_limits() -> None:
    _limiter.clear()
