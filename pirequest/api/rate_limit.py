"""
Per-IP fixed-window rate limiting for the pi-request routes.

Two windows apply to every call: the general API budget and the stricter
MFA budget. Counters live in process memory, or in Redis when
RATE_LIMIT_BACKEND=redis so that several workers share them.
"""
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request

from pirequest.core.errors import RateLimited
from pirequest.observability.logging import log
from pirequest.settings import settings
from pirequest.store.redis_conn import get_redis


@dataclass
class RateLimitInfo:
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None


class InMemoryRateLimiter:
    def __init__(self, rate: int, window: int):
        self.rate = rate
        self.window = window
        self._buckets: Dict[str, dict] = {}
        self._current_window: Optional[int] = None
        self._lock = threading.Lock()

    def check(self, key: str, now: Optional[float] = None) -> RateLimitInfo:
        now = time.time() if now is None else now
        window_start = int(now / self.window) * self.window
        reset_at = int(window_start + self.window)

        with self._lock:
            if self._current_window is None or window_start > self._current_window:
                # Counters from finished windows can never block again
                self._buckets = {k: b for k, b in self._buckets.items() if b["window"] >= window_start}
                self._current_window = window_start

            bucket = self._buckets.get(key)
            if bucket is None or bucket["window"] < window_start:
                bucket = {"window": window_start, "count": 0}
                self._buckets[key] = bucket

            if bucket["count"] >= self.rate:
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_at=reset_at,
                    retry_after=reset_at - int(now),
                )

            bucket["count"] += 1
            return RateLimitInfo(
                allowed=True,
                remaining=self.rate - bucket["count"],
                limit=self.rate,
                reset_at=reset_at,
            )


class RedisRateLimiter:
    def __init__(self, rate: int, window: int, redis=None, prefix: str = "ratelimit:"):
        self.rate = rate
        self.window = window
        self.prefix = prefix
        self._redis = redis

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def check(self, key: str, now: Optional[float] = None) -> RateLimitInfo:
        now = time.time() if now is None else now
        window_start = int(now / self.window) * self.window
        reset_at = int(window_start + self.window)
        rkey = f"{self.prefix}{key}:{window_start}"

        count = int(self.redis.incr(rkey))
        if count == 1:
            self.redis.expire(rkey, self.window * 2)

        if count > self.rate:
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.rate,
                reset_at=reset_at,
                retry_after=reset_at - int(now),
            )
        return RateLimitInfo(allowed=True, remaining=self.rate - count, limit=self.rate, reset_at=reset_at)


def _build(rate: int):
    window = int(settings.RATE_LIMIT_WINDOW_SEC)
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimiter(rate, window)
    return InMemoryRateLimiter(rate, window)


api_limiter = _build(int(settings.RATE_LIMIT_API_MAX))
mfa_limiter = _build(int(settings.RATE_LIMIT_MFA_MAX))

MFA_LIMIT_MESSAGE = "Too many MFA requests from this IP, please try again later."


def client_ip(request: Request) -> str:
    # X-Forwarded-For is client-controlled unless a trusted proxy overwrites it
    if settings.TRUST_PROXY_HEADERS:
        fwd = request.headers.get("x-forwarded-for", "")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def enforce_rate_limits(request: Request) -> None:
    """Route dependency: general API window first, then the MFA window."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    ip = client_ip(request)
    for name, limiter, message in (
        ("api", api_limiter, None),
        ("mfa", mfa_limiter, MFA_LIMIT_MESSAGE),
    ):
        info = limiter.check(f"{name}:{ip}")
        if not info.allowed:
            log(event="rate_limited", scope=name, ip=ip, retryAfter=info.retry_after)
            raise RateLimited(message, retry_after=int(info.retry_after or 0))
