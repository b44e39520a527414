"""
Fixed-window request throttling backed by the Django cache.

`RateLimiter.check()` is usable on its own; the DRF throttle classes at the
bottom of this module plug it into views. Counters live in the default cache
(Redis in production) so every worker process shares the same windows.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from django.conf import settings
from django.core.cache import caches
from rest_framework.throttling import BaseThrottle


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    checked_at: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets (at least 1 when blocked)."""
        if self.allowed:
            return 0
        return max(1, math.ceil(self.reset_at - self.checked_at))


class RateLimiter:
    """
    Count requests per (scope, identity) inside fixed windows of `interval` seconds.

    Args:
        scope: Endpoint class the counter belongs to (e.g. "offers")
        interval: Window length in seconds
        cache_alias: Django cache used for the counters
        clock: Returns the current unix time; injectable for tests
    """

    def __init__(
        self,
        scope: str,
        interval: int = 60,
        cache_alias: str = "default",
        clock: Callable[[], float] = time.time,
    ):
        self.scope = scope
        self.interval = interval
        self.cache_alias = cache_alias
        self.clock = clock

    def _key(self, identity, window: int) -> str:
        return f"ratelimit:{self.scope}:{identity}:{window}"

    def check(self, identity, limit: int) -> RateLimitResult:
        now = self.clock()
        window = int(now // self.interval)
        reset_at = float((window + 1) * self.interval)
        key = self._key(identity, window)
        cache = caches[self.cache_alias]

        # add() only succeeds for the first request of the window
        if cache.add(key, 1, timeout=self.interval + 1):
            count = 1
        else:
            try:
                count = cache.incr(key)
            except ValueError:
                # Key expired between add() and incr()
                cache.add(key, 1, timeout=self.interval + 1)
                count = 1

        if count > limit:
            return RateLimitResult(False, limit, 0, reset_at, now)
        return RateLimitResult(True, limit, limit - count, reset_at, now)

    def reset(self, identity) -> None:
        window = int(self.clock() // self.interval)
        caches[self.cache_alias].delete(self._key(identity, window))


_limiters: Dict[Tuple[str, int], RateLimiter] = {}


def get_rate_limiter(scope: str, interval: int) -> RateLimiter:
    limiter = _limiters.get((scope, interval))
    if limiter is None:
        limiter = _limiters[(scope, interval)] = RateLimiter(scope, interval)
    return limiter


def get_scope_config(scope: str) -> Tuple[int, int]:
    """Return (limit, interval) for a scope from settings.RATE_LIMITS."""
    try:
        limit, interval = settings.RATE_LIMITS[scope]
    except KeyError:
        raise KeyError(f"No rate limit configured for scope '{scope}'")
    return int(limit), int(interval)


def get_request_identity(request) -> str:
    """Authenticated user id, else the first forwarded client IP."""
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"

    meta = request.META
    forwarded = meta.get("HTTP_X_FORWARDED_FOR", "")
    ip = (
        forwarded.split(",")[0].strip()
        or meta.get("HTTP_X_REAL_IP")
        or meta.get("HTTP_CF_CONNECTING_IP")
        or meta.get("REMOTE_ADDR")
        or "unknown"
    )
    return f"ip:{ip}"


class EndpointRateThrottle(BaseThrottle):
    """
    DRF throttle driven by `settings.RATE_LIMITS[scope]`.

    Subclasses only set `scope`. A blocked request raises `Throttled` before
    the view body runs; the exception handler renders it as a 429.
    """
    scope: Optional[str] = None

    def __init__(self):
        self.result: Optional[RateLimitResult] = None

    def allow_request(self, request, view):
        if self.scope is None:
            return True
        limit, interval = get_scope_config(self.scope)
        limiter = get_rate_limiter(self.scope, interval)
        self.result = limiter.check(get_request_identity(request), limit)
        return self.result.allowed

    def wait(self):
        if self.result is None:
            return None
        return self.result.retry_after


class AuthRateThrottle(EndpointRateThrottle):
    scope = "auth"


class OfferRateThrottle(EndpointRateThrottle):
    scope = "offers"


class ReadRateThrottle(EndpointRateThrottle):
    scope = "reads"


class WriteRateThrottle(EndpointRateThrottle):
    scope = "writes"


class NearbyDriversRateThrottle(EndpointRateThrottle):
    scope = "nearby_drivers"


class HotZonesRateThrottle(EndpointRateThrottle):
    scope = "hot_zones"


class LeaderboardRateThrottle(EndpointRateThrottle):
    scope = "leaderboard"


class CouponClaimRateThrottle(EndpointRateThrottle):
    scope = "coupon_claims"
