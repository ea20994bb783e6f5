"""
Infrastructure Package.

Provides browser pooling and rate limiting for crawl jobs.
"""

from .browser_pool import (
    BrowserPool,
    BrowserHealth,
    PoolStatus,
    PooledSession,
)
from .rate_limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimitResult,
    RATE_LIMITS,
    get_client_ip,
)

__all__ = [
    # Browser Pool
    "BrowserPool",
    "BrowserHealth",
    "PoolStatus",
    "PooledSession",
    # Rate Limiter
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
    "RATE_LIMITS",
    "get_client_ip",
]
