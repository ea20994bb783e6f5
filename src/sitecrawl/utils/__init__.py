"""
Utilities Package.

Provides consent modal dismissal and URL validation for crawl pages.
"""

from .cookie_dismissal import (
    dismiss_cookie_modals,
    has_cookie_modal,
    wait_for_modal_to_close,
    matches_accept_text,
    PROBE_VERSION,
    DismissMethod,
    DismissOptions,
    DismissOutcome,
    COOKIE_BUTTON_SELECTORS,
    COOKIE_BUTTON_TEXT_PATTERNS,
    MODAL_CONTAINER_SELECTORS,
)
from .validation import (
    validate_scraping_url,
    is_valid_scraping_url,
    ValidationResult,
)

__all__ = [
    # Cookie dismissal
    "dismiss_cookie_modals",
    "has_cookie_modal",
    "wait_for_modal_to_close",
    "matches_accept_text",
    "PROBE_VERSION",
    "DismissMethod",
    "DismissOptions",
    "DismissOutcome",
    "COOKIE_BUTTON_SELECTORS",
    "COOKIE_BUTTON_TEXT_PATTERNS",
    "MODAL_CONTAINER_SELECTORS",
    # URL validation
    "validate_scraping_url",
    "is_valid_scraping_url",
    "ValidationResult",
]
