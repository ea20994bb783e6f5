"""Exceptions raised by the crawl engine."""

from typing import Optional


class SiteCrawlError(Exception):
    """Base class for all crawl engine errors."""


class PoolError(SiteCrawlError):
    """Raised when the browser pool cannot hand out a session."""


class PoolTimeoutError(PoolError):
    """Raised when no browser becomes available before the launch timeout."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Timeout waiting for available browser after {timeout_ms}ms")


class BrowserLaunchError(PoolError):
    """Raised when the driver fails to start a browser process."""


class PageLoadError(SiteCrawlError):
    """Raised when navigation completes with a non-2xx response."""

    def __init__(self, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}")


class InvalidUrlError(SiteCrawlError, ValueError):
    """Raised when a crawl is requested for a URL that must not be scraped."""
