"""
Request rate limiter.

Fixed-window counters keyed by caller identity. A burst that straddles a
window boundary can admit up to twice the nominal rate; that is accepted
behavior for a fixed window.
"""

import math
import threading
import time
from dataclasses import dataclass


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitRecord:
    """
    Rate limit tracking record for an identity.

    Attributes:
        count: Number of requests in the current window.
        reset_at: Epoch milliseconds when the window ends.
    """

    count: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of a single rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Maximum requests per window.
        remaining: Requests left in the current window.
        reset_at: Epoch milliseconds when the window ends.
        retry_after: Seconds to wait before retrying; 0 when allowed.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int = 0


@dataclass(frozen=True)
class RateLimitStatus:
    """Current counter state for an identity."""

    count: int
    remaining: int
    reset_at: int | None


class RateLimiter:
    """
    Fixed-window rate limiter.

    Thread-safe: each check holds the lock across read and increment, so
    concurrent requests from one identity cannot race past the limit.
    """

    def __init__(self, max_requests: int, window_ms: int) -> None:
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed per identity per window.
            window_ms: Window length in milliseconds.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_ms < 1:
            raise ValueError("window_ms must be positive")
        self._max = max_requests
        self._window_ms = window_ms
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        """Get maximum requests per window."""
        return self._max

    @property
    def window_ms(self) -> int:
        """Get window size in milliseconds."""
        return self._window_ms

    def check(self, identity: str | None, now_ms: int | None = None) -> RateLimitResult:
        """
        Count a request for the identity and decide whether it is allowed.

        Args:
            identity: Caller identity. If None, uses "unknown".
            now_ms: Current time in epoch milliseconds (defaults to wall clock).

        Returns:
            RateLimitResult describing the decision.
        """
        if identity is None:
            identity = "unknown"
        if now_ms is None:
            now_ms = _now_ms()

        with self._lock:
            record = self._records.get(identity)

            if record is None or now_ms > record.reset_at:
                record = RateLimitRecord(count=1, reset_at=now_ms + self._window_ms)
                self._records[identity] = record
                return RateLimitResult(
                    allowed=True,
                    limit=self._max,
                    remaining=self._max - 1,
                    reset_at=record.reset_at,
                )

            if record.count >= self._max:
                return RateLimitResult(
                    allowed=False,
                    limit=self._max,
                    remaining=0,
                    reset_at=record.reset_at,
                    retry_after=max(1, math.ceil((record.reset_at - now_ms) / 1000)),
                )

            record.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self._max,
                remaining=self._max - record.count,
                reset_at=record.reset_at,
            )

    def status(self, identity: str, now_ms: int | None = None) -> RateLimitStatus:
        """
        Get the current counter state without counting a request.

        Args:
            identity: Caller identity.
            now_ms: Current time in epoch milliseconds.

        Returns:
            RateLimitStatus; an expired or unknown record reads as empty.
        """
        if now_ms is None:
            now_ms = _now_ms()

        with self._lock:
            record = self._records.get(identity)
            if record is None or now_ms > record.reset_at:
                return RateLimitStatus(count=0, remaining=self._max, reset_at=None)
            return RateLimitStatus(
                count=record.count,
                remaining=max(0, self._max - record.count),
                reset_at=record.reset_at,
            )

    def reset(self, identity: str | None = None) -> None:
        """
        Reset rate limit for an identity or all identities.

        Args:
            identity: Identity to reset. If None, resets everything.
        """
        with self._lock:
            if identity is None:
                self._records.clear()
            else:
                self._records.pop(identity, None)

    def cleanup(self, now_ms: int | None = None) -> int:
        """
        Evict records whose window has expired.

        Args:
            now_ms: Current time in epoch milliseconds.

        Returns:
            Number of records evicted.
        """
        if now_ms is None:
            now_ms = _now_ms()

        with self._lock:
            expired = [key for key, record in self._records.items() if now_ms > record.reset_at]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# Window lengths for tier rate limit overrides
PERIOD_WINDOWS_MS: dict[str, int] = {
    "requests_per_minute": 60_000,
    "requests_per_hour": 3_600_000,
}


class TierRateLimits:
    """
    Pool of limiters enforcing per-tier rate limit overrides.

    Tier documents may carry ``rate_limiting.requests_per_minute`` and
    ``rate_limiting.requests_per_hour``. One limiter exists per
    (tier, period, limit) triple, so changing a limit starts a fresh window.
    """

    def __init__(self) -> None:
        self._limiters: dict[tuple[str, str, int], RateLimiter] = {}
        self._lock = threading.Lock()

    def _get_limiter(self, tier_id: str, period: str, limit: int) -> RateLimiter:
        key = (tier_id, period, limit)
        with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = RateLimiter(limit, PERIOD_WINDOWS_MS[period])
                self._limiters[key] = limiter
            return limiter

    def check(
        self,
        tier_id: str,
        overrides: dict[str, int],
        identity: str,
        now_ms: int | None = None,
    ) -> RateLimitResult | None:
        """
        Check every override configured for the tier.

        Args:
            tier_id: Resolved tier id.
            overrides: The tier's rate_limiting mapping.
            identity: Caller identity.
            now_ms: Current time in epoch milliseconds.

        Returns:
            The first rejecting result, or None when all overrides allow
            the request (or none are configured).
        """
        for period in PERIOD_WINDOWS_MS:
            limit = overrides.get(period)
            if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
                continue
            result = self._get_limiter(tier_id, period, limit).check(identity, now_ms)
            if not result.allowed:
                return result
        return None

    def cleanup(self, now_ms: int | None = None) -> int:
        """Evict expired records from every pooled limiter."""
        with self._lock:
            limiters = list(self._limiters.values())
        return sum(limiter.cleanup(now_ms) for limiter in limiters)
