"""
URL validation for scraping requests.

Rejects URLs the crawler must never be pointed at:
- Invalid URL formats
- Non-HTTP(S) protocols (file://, ftp://, etc.)
- Localhost and private network addresses (SSRF)
- Embedded credentials
"""
import ipaddress
from dataclasses import dataclass
from typing import Optional
from urllib.parse import SplitResult, urlsplit

from sitecrawl.constants import MAX_URL_LENGTH


BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "0.0.0.0",
    "::1",
    "::",
}


@dataclass
class ValidationResult:
    """Outcome of validate_scraping_url()."""
    valid: bool
    error: Optional[str] = None
    url: Optional[SplitResult] = None


def _is_private_address(hostname: str) -> bool:
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_reserved
        or address.is_unspecified
    )


def validate_scraping_url(
    url: str,
    allow_localhost: bool = False,
    allow_private_ips: bool = False,
) -> ValidationResult:
    """
    Validate a URL for safe scraping operations.

    Args:
        url: The URL string to validate
        allow_localhost: Permit localhost (development)
        allow_private_ips: Permit private/internal IP addresses (internal tools)

    Returns:
        ValidationResult with valid flag and optional error message
    """
    if not url or not isinstance(url, str):
        return ValidationResult(valid=False, error="URL is required")

    trimmed = url.strip()
    if not trimmed:
        return ValidationResult(valid=False, error="URL is required")

    if len(trimmed) > MAX_URL_LENGTH:
        return ValidationResult(valid=False, error=f"URL is too long (max {MAX_URL_LENGTH} characters)")

    try:
        parsed = urlsplit(trimmed)
        hostname = (parsed.hostname or "").lower()
        parsed.port  # raises on a malformed port
    except ValueError:
        return ValidationResult(valid=False, error="Invalid URL format")

    if not parsed.scheme or not hostname:
        return ValidationResult(valid=False, error="Invalid URL format")

    if parsed.scheme not in ("http", "https"):
        return ValidationResult(
            valid=False,
            error=f"Invalid protocol: {parsed.scheme}:. Only HTTP and HTTPS are allowed",
        )

    if not allow_localhost and hostname in BLOCKED_HOSTNAMES:
        return ValidationResult(valid=False, error="Localhost URLs are not allowed")

    if not allow_private_ips and _is_private_address(hostname):
        loopback_allowed = allow_localhost and ipaddress.ip_address(hostname).is_loopback
        if not loopback_allowed:
            return ValidationResult(valid=False, error="Private/internal IP addresses are not allowed")

    if parsed.username or parsed.password:
        return ValidationResult(valid=False, error="URLs with embedded credentials are not allowed")

    return ValidationResult(valid=True, url=parsed)


def is_valid_scraping_url(
    url: str,
    allow_localhost: bool = False,
    allow_private_ips: bool = False,
) -> bool:
    """Boolean form of validate_scraping_url()."""
    return validate_scraping_url(url, allow_localhost, allow_private_ips).valid
