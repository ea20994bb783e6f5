"""Site crawler with breadth-first search over one live browser page."""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Pattern

from sitecrawl.constants import POST_DISMISS_SETTLE_SECONDS
from sitecrawl.crawl_config import CrawlOptions
from sitecrawl.exceptions import InvalidUrlError, PageLoadError
from sitecrawl.models import CrawlProgress, CrawlResult, CrawlState, CrawlSummary, LinkGraphNode
from sitecrawl.url_normalizer import (
    categorize_links,
    deduplicate_urls,
    is_within_path,
    normalize_url,
    url_to_file_path,
)
from sitecrawl.utils.cookie_dismissal import DismissOutcome, dismiss_cookie_modals
from sitecrawl.utils.validation import validate_scraping_url

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlProgress], None]
Dismisser = Callable[..., Awaitable[DismissOutcome]]

# Runs in the page. Links are resolved against the live document URL so
# redirects and <base href> are honoured. Shares PROBE_VERSION with the
# consent scripts in utils.cookie_dismissal.
EXTRACT_PAGE_SCRIPT = """
() => {
    const base = window.location.href;
    const links = [];
    for (const a of document.querySelectorAll('a[href]')) {
        try {
            links.push(new URL(a.getAttribute('href'), base).href);
        } catch (e) {}
    }
    const images = [];
    for (const img of document.querySelectorAll('img[src]')) {
        const src = img.getAttribute('src');
        if (!src || src.startsWith('data:')) continue;
        try {
            images.push(new URL(src, base).href);
        } catch (e) {}
    }
    return {
        title: document.title || '',
        html: document.documentElement.outerHTML,
        links: links,
        images: images,
    };
}
"""


@dataclass
class PageData:
    """Content pulled from the rendered DOM of one page."""
    title: str = ""
    html: str = ""
    internal_links: List[str] = field(default_factory=list)
    external_links: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)


async def extract_page_data(page, base_url: str) -> PageData:
    """Read title, HTML, links and images from the current page.

    Args:
        page: Playwright page already navigated to the target URL
        base_url: Crawl root; decides which links count as internal

    Returns:
        PageData with links bucketed into internal and external
    """
    raw = await page.evaluate(EXTRACT_PAGE_SCRIPT)
    links = categorize_links(raw.get("links") or [], base_url)

    return PageData(
        title=raw.get("title") or "",
        html=raw.get("html") or "",
        internal_links=links.internal,
        external_links=links.external,
        images=[src for src in raw.get("images") or [] if src],
    )


def _should_exclude(url: str, patterns: List[Pattern[str]]) -> bool:
    return any(pattern.search(url) for pattern in patterns)


def _error_message(error: Exception) -> str:
    return str(error) or error.__class__.__name__


async def crawl_website(
    page,
    options: CrawlOptions,
    on_progress: Optional[ProgressCallback] = None,
    dismisser: Dismisser = dismiss_cookie_modals,
) -> CrawlSummary:
    """Crawl a site breadth-first from options.base_url.

    Pages are visited in discovery order until the frontier is empty or
    max_pages URLs have been attempted. A page that fails to load is recorded
    with its error and the crawl moves on, so a summary is always returned.

    Args:
        page: Playwright page used for every navigation
        options: Validated crawl options
        on_progress: Called once per attempted URL, before navigation
        dismisser: Coroutine used to close consent modals on the first page

    Returns:
        CrawlSummary with one result per attempted URL
    """
    started = time.monotonic()
    base_url = options.base_url
    exclude_patterns = options.all_exclude_patterns()

    queue = deque([base_url])
    visited = set()
    results: List[CrawlResult] = []
    error_count = 0
    first_page = True

    logger.info(f"Crawl {CrawlState.PENDING.value}: {base_url} (max_pages={options.max_pages})")
    logger.info(f"Crawl {CrawlState.RUNNING.value}: {base_url}")

    while queue and len(results) < options.max_pages:
        current_url = queue.popleft()
        normalized = normalize_url(current_url)

        # Skip if already visited
        if normalized in visited:
            continue
        visited.add(normalized)

        if _should_exclude(current_url, exclude_patterns):
            logger.debug(f"Excluded: {current_url}")
            continue

        if options.stay_within_path and not is_within_path(
            current_url, base_url, options.stay_within_path
        ):
            logger.debug(f"Outside {options.stay_within_path}: {current_url}")
            continue

        if on_progress:
            on_progress(CrawlProgress(
                processed=len(results),
                total=min(options.max_pages, len(results) + len(queue) + 1),
                queued=len(queue),
                current_url=current_url,
                errors=error_count,
            ))

        logger.info(f"Crawling ({len(results) + 1}/{options.max_pages}): {current_url}")

        try:
            response = await page.goto(
                current_url,
                wait_until=options.wait_until,
                timeout=options.timeout,
            )
            if response is not None and not response.ok:
                raise PageLoadError(current_url, response.status)

            if options.dismiss_cookies and first_page:
                first_page = False
                outcome = await dismisser(page)
                if outcome.dismissed:
                    await asyncio.sleep(POST_DISMISS_SETTLE_SECONDS)

            data = await extract_page_data(page, base_url)

        except Exception as e:
            error_count += 1
            logger.error(f"Failed to crawl {current_url}: {e}")
            results.append(CrawlResult(
                url=current_url,
                normalized_url=normalized,
                file_path=url_to_file_path(current_url, base_url),
                error=_error_message(e),
            ))
        else:
            results.append(CrawlResult(
                url=current_url,
                normalized_url=normalized,
                file_path=url_to_file_path(current_url, base_url),
                title=data.title,
                html=data.html,
                internal_links=tuple(data.internal_links),
                external_links=tuple(data.external_links),
                images=tuple(data.images),
            ))

            queued = 0
            for link in deduplicate_urls(data.internal_links):
                if normalize_url(link) in visited or _should_exclude(link, exclude_patterns):
                    continue
                queue.append(link)
                queued += 1

            logger.debug(f"Success - {len(data.internal_links)} internal links, queued {queued}")

        # Rate limiting
        if options.delay_between_requests > 0 and queue and len(results) < options.max_pages:
            await asyncio.sleep(options.delay_between_requests / 1000)

    duration_ms = (time.monotonic() - started) * 1000
    summary = CrawlSummary.from_results(base_url, results, duration_ms)

    logger.info(
        f"Crawl {summary.state.value}: {summary.successful_pages}/{summary.total_pages} pages "
        f"in {duration_ms:.0f}ms"
    )
    return summary


def build_link_graph(results: List[CrawlResult]) -> Dict[str, LinkGraphNode]:
    """Build a directed graph between successfully crawled pages.

    Nodes are keyed by normalized URL and edges hold those same keys. Edges
    only point at pages that were themselves crawled; self links are dropped.
    """
    graph: Dict[str, LinkGraphNode] = {}

    for result in results:
        if result.success:
            graph[result.normalized_url] = LinkGraphNode(
                url=result.url,
                title=result.title,
                file_path=result.file_path,
            )

    for result in results:
        if not result.success:
            continue

        source = graph[result.normalized_url]
        for link in result.internal_links:
            target_key = normalize_url(link)
            target = graph.get(target_key)
            if target is None or target_key == result.normalized_url:
                continue

            if target_key not in source.outgoing_links:
                source.outgoing_links.append(target_key)
            if result.normalized_url not in target.incoming_links:
                target.incoming_links.append(result.normalized_url)

    return graph


class SiteCrawler:
    """Runs crawl jobs on browsers borrowed from a BrowserPool.

    Each job holds one browser and one page for its whole duration, and the
    browser is always returned to the pool.
    """

    def __init__(
        self,
        pool,
        dismisser: Dismisser = dismiss_cookie_modals,
        user_agent: Optional[str] = None,
        allow_localhost: bool = False,
        allow_private_ips: bool = False,
    ):
        """Initialize the site crawler.

        Args:
            pool: Started BrowserPool to borrow browsers from
            dismisser: Consent modal handler for the first page
            user_agent: Custom user agent for crawl pages
            allow_localhost: Permit crawling localhost (development)
            allow_private_ips: Permit crawling private network addresses
        """
        self.pool = pool
        self.dismisser = dismisser
        self.user_agent = user_agent
        self.allow_localhost = allow_localhost
        self.allow_private_ips = allow_private_ips

    async def crawl(
        self,
        options: CrawlOptions,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CrawlSummary:
        """Validate the start URL, then crawl on a pooled browser.

        Raises:
            InvalidUrlError: If the start URL must not be scraped
            PoolTimeoutError: If no browser became available in time
        """
        validation = validate_scraping_url(
            options.base_url,
            allow_localhost=self.allow_localhost,
            allow_private_ips=self.allow_private_ips,
        )
        if not validation.valid:
            raise InvalidUrlError(f"{validation.error}: {options.base_url}")

        async with self.pool.browser() as browser:
            if self.user_agent:
                page = await browser.new_page(user_agent=self.user_agent)
            else:
                page = await browser.new_page()

            try:
                return await crawl_website(page, options, on_progress, self.dismisser)
            finally:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"Error closing crawl page: {e}")
