"""
Crawl job configuration.

This module provides a validated Pydantic configuration model for one crawl
job. Invalid options raise pydantic.ValidationError before any browser is
touched.
"""
import re
from typing import List, Literal, Optional, Pattern
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sitecrawl.config import CrawlDefaults
from sitecrawl.constants import (
    DEFAULT_DELAY_BETWEEN_REQUESTS_MS,
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    MAX_PAGES_LIMIT,
)

# Non-content pages (admin, login, cart...) are matched case-insensitively
COMPILED_DEFAULT_EXCLUDES = [re.compile(p, re.IGNORECASE) for p in DEFAULT_EXCLUDE_PATTERNS]


class CrawlOptions(BaseModel):
    """
    Immutable per-job configuration for crawl_website().

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        description="Starting URL of the crawl"
    )

    max_pages: int = Field(
        default=20,
        description="Maximum pages to attempt, failures included",
        ge=1,
        le=MAX_PAGES_LIMIT
    )

    dismiss_cookies: bool = Field(
        default=True,
        description="Dismiss consent modals on the first successfully loaded page"
    )

    delay_between_requests: int = Field(
        default=DEFAULT_DELAY_BETWEEN_REQUESTS_MS,
        description="Politeness delay between page visits in milliseconds",
        ge=0
    )

    timeout: int = Field(
        default=DEFAULT_NAVIGATION_TIMEOUT_MS,
        description="Page navigation timeout in milliseconds",
        ge=1
    )

    stay_within_path: Optional[str] = Field(
        default=None,
        description="Only crawl URLs containing this path prefix"
    )

    exclude_patterns: List[Pattern[str]] = Field(
        default_factory=list,
        description="Regex patterns for URLs to skip, in addition to the built-in defaults"
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="networkidle",
        description="When to consider navigation complete"
    )

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip()
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URL, got {value!r}")
        return value

    def all_exclude_patterns(self) -> List[Pattern[str]]:
        """Built-in exclude patterns followed by the caller's own."""
        return COMPILED_DEFAULT_EXCLUDES + list(self.exclude_patterns)

    @classmethod
    def from_defaults(
        cls,
        base_url: str,
        defaults: Optional[CrawlDefaults] = None,
        **overrides,
    ) -> "CrawlOptions":
        """Build options from CrawlDefaults, letting explicit values win."""
        values = (defaults or CrawlDefaults.from_env()).to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(base_url=base_url, **values)
