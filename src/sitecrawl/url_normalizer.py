"""URL normalization and deduplication utilities.

Used to prevent crawling the same page multiple times when URLs differ only
in trailing slashes, fragments, default index files or tracking parameters,
and to derive stable output paths for crawled pages.

Every function here is pure: malformed input never raises, it is either
returned unchanged or classified as "not a match".
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

# Tracking parameters stripped during normalization
TRACKING_PARAMS = [
    # Google Analytics
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "gclid", "gclsrc", "dclid",
    # Facebook
    "fbclid", "fb_action_ids", "fb_action_types", "fb_source", "fb_ref",
    # Microsoft
    "msclkid",
    # Twitter
    "twclid",
    # Mailchimp and friends
    "ref", "source", "mc_cid", "mc_eid",
    "_ga", "_gl",
    "oly_enc_id", "oly_anon_id",
    "vero_id", "vero_conv",
    "wickedid",
    "igshid",
]

# Index documents that resolve to their directory
DEFAULT_INDEX_FILES = [
    "index.html",
    "index.htm",
    "index.php",
    "index.asp",
    "index.aspx",
    "index.jsp",
    "default.html",
    "default.htm",
    "default.asp",
    "default.aspx",
]

DEFAULT_PORTS = {"http": 80, "https": 443}

ASSET_EXTENSIONS = re.compile(
    r"\.(png|jpg|jpeg|gif|webp|svg|ico|pdf|zip|tar|gz|mp3|mp4|wav|avi|mov|"
    r"doc|docx|xls|xlsx|ppt|pptx)$",
    re.IGNORECASE,
)

PAGE_EXTENSIONS = re.compile(r"\.(html?|php|asp|aspx|jsp)$", re.IGNORECASE)

UNSAFE_PATH_CHARS = re.compile(r'[<>:"|?*]')

SKIPPED_SCHEMES = ("javascript:", "data:", "mailto:", "tel:")


@dataclass
class NormalizeOptions:
    """Switches controlling what normalize_url() canonicalizes."""
    remove_trailing_slash: bool = True
    remove_default_index: bool = True
    remove_tracking_params: bool = True
    remove_all_query_params: bool = False
    remove_fragment: bool = True
    sort_query_params: bool = True
    lowercase_hostname: bool = True
    # Some servers are case-sensitive
    lowercase_path: bool = False
    custom_params_to_remove: List[str] = field(default_factory=list)


@dataclass
class CategorizedLinks:
    """Links found on a page, bucketed by kind."""
    internal: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    anchors: List[str] = field(default_factory=list)


_DEFAULT_OPTIONS = NormalizeOptions()


def _split_netloc(netloc: str) -> Tuple[str, str, Optional[str]]:
    """Split a netloc into (userinfo, host, port) keeping the host's case."""
    userinfo, sep, hostport = netloc.rpartition("@")
    userinfo = userinfo + sep

    if hostport.startswith("["):
        end = hostport.find("]")
        if end == -1:
            raise ValueError(f"Invalid IPv6 host: {netloc}")
        host = hostport[:end + 1]
        rest = hostport[end + 1:]
        port = rest[1:] if rest.startswith(":") else None
    else:
        host, colon, port = hostport.rpartition(":")
        if not colon:
            host, port = hostport, None

    if port is not None and port != "" and not port.isdigit():
        raise ValueError(f"Invalid port: {netloc}")

    return userinfo, host, port or None


def _resolve_dot_segments(path: str) -> str:
    """Resolve '.' and '..' segments the way a browser URL parser does."""
    if "." not in path:
        return path

    output: List[str] = []
    segments = path.split("/")
    for index, segment in enumerate(segments):
        is_last = index == len(segments) - 1
        if segment == ".":
            if is_last:
                output.append("")
            continue
        if segment == "..":
            if len(output) > 1:
                output.pop()
            if is_last:
                output.append("")
            continue
        output.append(segment)

    resolved = "/".join(output)
    if path.startswith("/") and not resolved.startswith("/"):
        resolved = "/" + resolved
    return resolved


def _strip_path(path: str, opts: NormalizeOptions) -> str:
    """Strip trailing slashes and index documents until the path is stable."""
    while True:
        previous = path

        if opts.remove_trailing_slash and path != "/" and path.endswith("/"):
            path = path[:-1]

        if opts.remove_default_index:
            lowered = path.lower()
            for index_file in DEFAULT_INDEX_FILES:
                if lowered.endswith("/" + index_file):
                    path = path[:-len(index_file)]
                    break

        if path == previous:
            return path


def _is_absolute(parts) -> bool:
    return bool(parts.scheme) and bool(parts.netloc)


def normalize_url(url: str, options: Optional[NormalizeOptions] = None) -> str:
    """Normalize a URL for deduplication purposes.

    Args:
        url: Absolute URL to normalize
        options: Normalization switches (defaults if None)

    Returns:
        Canonical form of the URL, or the input unchanged if it cannot be parsed
    """
    opts = options or _DEFAULT_OPTIONS

    try:
        parts = urlsplit(url)
        if not _is_absolute(parts):
            return url

        scheme = parts.scheme.lower()
        userinfo, host, port = _split_netloc(parts.netloc)

        if opts.lowercase_hostname:
            host = host.lower()

        if port is not None and int(port) == DEFAULT_PORTS.get(scheme):
            port = None

        netloc = f"{userinfo}{host}" + (f":{port}" if port else "")

        path = _resolve_dot_segments(parts.path) or "/"
        if opts.lowercase_path:
            path = path.lower()

        fragment = "" if opts.remove_fragment else parts.fragment

        query = parts.query
        if opts.remove_all_query_params:
            query = ""
        elif query:
            params_to_remove = set(opts.custom_params_to_remove)
            if opts.remove_tracking_params:
                params_to_remove.update(TRACKING_PARAMS)

            pairs = [
                (key, value)
                for key, value in parse_qsl(query, keep_blank_values=True)
                if key not in params_to_remove
            ]
            if opts.sort_query_params:
                pairs.sort(key=lambda pair: pair[0])
            query = urlencode(pairs)

        path = _strip_path(path, opts)

        return urlunsplit((scheme, netloc, path, query, fragment))

    except ValueError:
        return url


def is_same_page(url1: str, url2: str, options: Optional[NormalizeOptions] = None) -> bool:
    """Check if two URLs point to the same page (after normalization)."""
    return normalize_url(url1, options) == normalize_url(url2, options)


def _resolve(link: str, base_url: str):
    """Resolve link against base_url; None when either side is unusable."""
    try:
        base = urlsplit(base_url)
        if not _is_absolute(base):
            return None, None
        resolved = urlsplit(urljoin(base_url, link))
        if not resolved.hostname or not base.hostname:
            return None, None
        return resolved, base
    except ValueError:
        return None, None


def is_internal_link(link: str, base_url: str) -> bool:
    """Check if a link (absolute or relative) has the same hostname as base_url."""
    resolved, base = _resolve(link, base_url)
    if resolved is None:
        return False
    return resolved.hostname.lower() == base.hostname.lower()


def is_within_path(link: str, base_url: str, path_prefix: str) -> bool:
    """Check if a link is internal and its path starts with path_prefix."""
    resolved, base = _resolve(link, base_url)
    if resolved is None:
        return False
    if resolved.hostname.lower() != base.hostname.lower():
        return False
    return (resolved.path or "/").startswith(path_prefix)


def _origin(parts) -> Tuple[str, str, Optional[int]]:
    scheme = parts.scheme.lower()
    port = parts.port
    if port == DEFAULT_PORTS.get(scheme):
        port = None
    return scheme, (parts.hostname or "").lower(), port


def get_relative_path(from_url: str, to_url: str) -> str:
    """Get a '../'-relative path between two pages on the same origin.

    Returns the absolute target URL when the origins differ or either URL
    cannot be parsed.
    """
    try:
        source = urlsplit(from_url)
        target = urlsplit(to_url)
        if not _is_absolute(source) or not _is_absolute(target):
            return to_url
        if _origin(source) != _origin(target):
            return to_url
    except ValueError:
        return to_url

    from_parts = [p for p in _resolve_dot_segments(source.path).split("/") if p]
    to_parts = [p for p in _resolve_dot_segments(target.path).split("/") if p]

    common = 0
    for i in range(min(len(from_parts) - 1, len(to_parts))):
        if from_parts[i] != to_parts[i]:
            break
        common += 1

    ups = len(from_parts) - 1 - common
    up_path = "../" * max(ups, 0)
    down_path = "/".join(to_parts[common:])

    return (up_path + down_path) or "."


def _hash_url(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:12]


def url_to_file_path(url: str, base_url: str) -> str:
    """Convert a URL to a relative, filesystem-safe output path.

    The site root maps to 'index'; page extensions are dropped and characters
    that are unsafe in file names are replaced. Unparseable input falls back
    to a hashed name.
    """
    try:
        parts = urlsplit(url)
        base = urlsplit(base_url)
        if not _is_absolute(parts) or not _is_absolute(base):
            return f"page_{_hash_url(url)}"
    except ValueError:
        return f"page_{_hash_url(url)}"

    pathname = _resolve_dot_segments(parts.path)
    pathname = pathname.lstrip("/")

    if not pathname:
        return "index"

    if pathname.endswith("/"):
        pathname = pathname[:-1]

    pathname = PAGE_EXTENSIONS.sub("", pathname)
    pathname = UNSAFE_PATH_CHARS.sub("_", pathname).replace("\\", "/")

    return pathname or "index"


def categorize_links(links: List[str], base_url: str) -> CategorizedLinks:
    """Bucket raw links into internal pages, external pages, assets and anchors.

    javascript:, data:, mailto: and tel: links are dropped entirely.
    """
    result = CategorizedLinks()

    for link in links:
        if not link or link.startswith(SKIPPED_SCHEMES):
            continue

        if link.startswith("#"):
            result.anchors.append(link)
            continue

        resolved, _ = _resolve(link, base_url)
        if resolved is None:
            continue
        href = urlunsplit(resolved)

        if ASSET_EXTENSIONS.search(resolved.path):
            result.assets.append(href)
        elif is_internal_link(link, base_url):
            result.internal.append(href)
        else:
            result.external.append(href)

    return result


def deduplicate_urls(urls: List[str], options: Optional[NormalizeOptions] = None) -> List[str]:
    """Remove URLs whose normalized form repeats, keeping the first original."""
    seen = set()
    result = []

    for url in urls:
        normalized = normalize_url(url, options)
        if normalized not in seen:
            seen.add(normalized)
            result.append(url)

    return result
