"""
Fixed-Window Rate Limiter.

This module provides per-client admission control for inbound crawl
requests. Counters live inside a RateLimiter instance, keyed by
"<endpoint_key>:<client_id>", so one limiter can serve several endpoint
tiers at once.

Note: state is per process only.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from sitecrawl.constants import RATE_LIMIT_CLEANUP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for one rate limit tier."""
    # Maximum requests allowed in the window
    max_requests: int

    # Window duration in milliseconds
    window_ms: int

    def __post_init__(self):
        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")


# Default tiers per endpoint type
RATE_LIMITS = {
    # Heavy endpoints (scraping) - 10 requests per minute
    "scraping": RateLimitConfig(max_requests=10, window_ms=60 * 1000),
    # Medium endpoints (image proxy) - 100 requests per minute
    "proxy": RateLimitConfig(max_requests=100, window_ms=60 * 1000),
    # Light endpoints (health check) - 60 requests per minute
    "health": RateLimitConfig(max_requests=60, window_ms=60 * 1000),
}


@dataclass
class RateLimitEntry:
    """Counter for one identifier in the current window."""
    count: int
    reset_time: float  # epoch seconds


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single admission check."""
    limited: bool
    remaining: int
    reset_time: float  # epoch seconds


class RateLimiter:
    """
    Fixed-window request counter keyed by client identifier.

    Features:
    - First request in a window (or first after expiry) starts a new window
    - Requests beyond max_requests within the window are limited
    - Expired entries are swept periodically to bound memory
    - Thread-safe increments
    """

    def __init__(
        self,
        cleanup_interval: float = RATE_LIMIT_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            cleanup_interval: Minimum seconds between sweeps of expired entries
            clock: Time source returning epoch seconds
        """
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """
        Count a request and report whether it is over the limit.

        Args:
            identifier: Unique identifier (typically "<endpoint>:<client ip>")
            config: Rate limit tier to apply

        Returns:
            RateLimitResult with limited flag, remaining requests and reset time
        """
        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)

            entry = self._entries.get(identifier)

            if entry is None or now > entry.reset_time:
                # First request or window expired - start a new window
                entry = RateLimitEntry(count=1, reset_time=now + config.window_ms / 1000)
                self._entries[identifier] = entry
                return RateLimitResult(
                    limited=False,
                    remaining=config.max_requests - 1,
                    reset_time=entry.reset_time,
                )

            entry.count += 1

            limited = entry.count > config.max_requests
            if limited and entry.count == config.max_requests + 1:
                logger.warning(f"Rate limit exceeded for {identifier}")

            return RateLimitResult(
                limited=limited,
                remaining=max(0, config.max_requests - entry.count),
                reset_time=entry.reset_time,
            )

    def check_client(
        self,
        endpoint_key: str,
        client_id: str,
        config: RateLimitConfig,
    ) -> RateLimitResult:
        """Check a client against a named endpoint tier."""
        return self.check(f"{endpoint_key}:{client_id}", config)

    def _cleanup_expired(self, now: float) -> None:
        """Drop entries whose window has expired (at most once per interval)."""
        if now - self._last_cleanup < self.cleanup_interval:
            return

        self._last_cleanup = now
        expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"Rate limiter: swept {len(expired)} expired entries")

    def retry_after(self, result: RateLimitResult) -> int:
        """Seconds a limited client should wait before retrying."""
        return max(0, math.ceil(result.reset_time - self._clock()))

    def rate_limit_headers(
        self,
        config: RateLimitConfig,
        result: RateLimitResult,
    ) -> dict[str, str]:
        """
        Build response headers describing the client's quota.

        Limited results also carry Retry-After.
        """
        headers = {
            "X-RateLimit-Limit": str(config.max_requests),
            "X-RateLimit-Remaining": "0" if result.limited else str(result.remaining),
            "X-RateLimit-Reset": str(math.ceil(result.reset_time)),
        }
        if result.limited:
            headers["Retry-After"] = str(self.retry_after(result))
        return headers

    def reset(self) -> None:
        """Reset rate limiter to initial state."""
        with self._lock:
            self._entries.clear()
            self._last_cleanup = self._clock()

    def __len__(self) -> int:
        return len(self._entries)


def get_client_ip(headers: Mapping[str, str], default: Optional[str] = "unknown") -> str:
    """
    Extract the client IP from proxy headers.

    Args:
        headers: Request headers (case-insensitive lookups are tried)
        default: Value when no header identifies the client

    Returns:
        First X-Forwarded-For entry, else X-Real-IP, else default
    """
    lowered = {k.lower(): v for k, v in headers.items()}

    forwarded_for = lowered.get("x-forwarded-for")
    if forwarded_for:
        # First IP in chain is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = lowered.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return default
