"""Headless-browser site crawler with pooled browsers."""

__version__ = "0.1.0"

from sitecrawl.site_crawler import SiteCrawler, crawl_website, build_link_graph
from sitecrawl.crawl_config import CrawlOptions
from sitecrawl.models import (
    CrawlResult,
    CrawlProgress,
    CrawlSummary,
    CrawlState,
    LinkGraphNode,
)
from sitecrawl.url_normalizer import (
    NormalizeOptions,
    normalize_url,
    is_same_page,
    is_internal_link,
    get_relative_path,
    url_to_file_path,
    categorize_links,
    deduplicate_urls,
)
from sitecrawl.exceptions import (
    SiteCrawlError,
    PoolError,
    PoolTimeoutError,
    BrowserLaunchError,
    PageLoadError,
    InvalidUrlError,
)
from sitecrawl.config import settings

from sitecrawl.infrastructure import (
    BrowserPool,
    BrowserHealth,
    PoolStatus,
    RateLimiter,
    RateLimitConfig,
)

__all__ = [
    "SiteCrawler",
    "crawl_website",
    "build_link_graph",
    "CrawlOptions",
    "CrawlResult",
    "CrawlProgress",
    "CrawlSummary",
    "CrawlState",
    "LinkGraphNode",
    "NormalizeOptions",
    "normalize_url",
    "is_same_page",
    "is_internal_link",
    "get_relative_path",
    "url_to_file_path",
    "categorize_links",
    "deduplicate_urls",
    "SiteCrawlError",
    "PoolError",
    "PoolTimeoutError",
    "BrowserLaunchError",
    "PageLoadError",
    "InvalidUrlError",
    "settings",
    "BrowserPool",
    "BrowserHealth",
    "PoolStatus",
    "RateLimiter",
    "RateLimitConfig",
]
