# src/sitecrawl/constants.py
"""Centralized constants for the site crawler.

This module contains magic numbers and configuration values that are used
across multiple modules. For environment-driven defaults, see config.py
and CrawlDefaults.
"""

# =============================================================================
# Browser Pool Constants
# =============================================================================

# Maximum concurrent browser processes
DEFAULT_POOL_MAX_SIZE = 3

# Time to wait for a browser to launch or free up (ms)
DEFAULT_LAUNCH_TIMEOUT_MS = 30000

# Free browsers idle longer than this are closed (ms)
DEFAULT_IDLE_TIMEOUT_MS = 60000

# Interval between idle eviction sweeps (ms)
DEFAULT_CLEANUP_INTERVAL_MS = 30000

# Placeholder page kept open on released browsers
BLANK_PAGE_URL = "about:blank"

# Chromium flags for containerized headless runs
BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]


# =============================================================================
# Crawler Constants
# =============================================================================

# Default pages if not specified
DEFAULT_MAX_PAGES = 20

# Hard upper bound on pages for one crawl job
MAX_PAGES_LIMIT = 500

# Delay between requests in ms
DEFAULT_DELAY_BETWEEN_REQUESTS_MS = 500

# Page navigation timeout in ms
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000

# Settle time after a consent modal is dismissed (seconds)
POST_DISMISS_SETTLE_SECONDS = 0.5

# Patterns for non-content pages that are never crawled
DEFAULT_EXCLUDE_PATTERNS = [
    r"/wp-admin/",
    r"/wp-login",
    r"/login",
    r"/logout",
    r"/sign-?in",
    r"/sign-?out",
    r"/cart",
    r"/checkout",
    r"/account",
    r"/admin",
    r"\?replytocom=",
    r"/feed/?$",
    r"/rss/?$",
    r"/print/",
]


# =============================================================================
# Cookie Dismissal Constants
# =============================================================================

# Time to wait for a consent modal to appear (ms)
DEFAULT_COOKIE_MODAL_TIMEOUT_MS = 3000

# Retries of the full strategy ladder
DEFAULT_DISMISS_RETRY_COUNT = 2

# Delay between retries (ms)
DEFAULT_DISMISS_RETRY_DELAY_MS = 500

# Polling interval while waiting for a modal to close (ms)
DEFAULT_MODAL_POLL_INTERVAL_MS = 100

# Maximum polls while waiting for a modal to close
DEFAULT_MODAL_MAX_POLL_ATTEMPTS = 10


# =============================================================================
# Rate Limiter Constants
# =============================================================================

# Expired entries are swept at most this often (seconds)
RATE_LIMIT_CLEANUP_INTERVAL_SECONDS = 5 * 60


# =============================================================================
# Validation Constants
# =============================================================================

# Maximum URL length accepted for scraping
MAX_URL_LENGTH = 2048
