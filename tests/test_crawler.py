"""Tests for the breadth-first site crawler."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecrawl.crawl_config import CrawlOptions
from sitecrawl.exceptions import InvalidUrlError, PoolTimeoutError
from sitecrawl.models import CrawlResult, CrawlState
from sitecrawl.site_crawler import (
    EXTRACT_PAGE_SCRIPT,
    SiteCrawler,
    build_link_graph,
    crawl_website,
    extract_page_data,
)
from sitecrawl.utils.cookie_dismissal import DismissMethod, DismissOutcome

pytest_plugins = ('pytest_asyncio',)

BASE = "https://example.com/"


class FakePage:
    """Stands in for a Playwright page over an in-memory site.

    pages maps absolute URL -> (title, links) or an exception to raise from
    goto(). Unknown URLs time out.
    """

    def __init__(self, pages, status_codes=None):
        self.pages = pages
        self.status_codes = status_codes or {}
        self.current = None
        self.visits = []
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.visits.append(url)
        entry = self.pages.get(url)
        if entry is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        if isinstance(entry, Exception):
            raise entry
        self.current = url

        response = MagicMock()
        response.status = self.status_codes.get(url, 200)
        response.ok = 200 <= response.status < 300
        return response

    async def evaluate(self, script, arg=None):
        assert script == EXTRACT_PAGE_SCRIPT
        title, links = self.pages[self.current]
        return {
            "title": title,
            "html": f"<html><head><title>{title}</title></head></html>",
            "links": list(links),
            "images": [f"{self.current}logo.png"] if self.current == BASE else [],
        }

    async def close(self):
        self.closed = True


def _options(**overrides):
    values = {"base_url": BASE, "max_pages": 10, "delay_between_requests": 0}
    values.update(overrides)
    return CrawlOptions(**values)


def _no_modal():
    return AsyncMock(return_value=DismissOutcome())


THREE_PAGE_SITE = {
    BASE: ("Home", [BASE + "about"]),
    BASE + "about": ("About", [BASE + "contact"]),
    BASE + "contact": ("Contact", []),
}


class TestCrawlWebsite:
    """Test cases for crawl_website."""

    @pytest.mark.asyncio
    async def test_three_page_site(self):
        """Test a chain of three pages is crawled in full."""
        page = FakePage(THREE_PAGE_SITE)

        summary = await crawl_website(page, _options(), dismisser=_no_modal())

        assert summary.total_pages == 3
        assert summary.successful_pages == 3
        assert summary.failed_pages == 0
        assert summary.total_images == 1
        assert summary.state == CrawlState.SUCCEEDED
        assert [r.url for r in summary.results] == [BASE, BASE + "about", BASE + "contact"]
        assert summary.results[0].file_path == "index"
        assert summary.crawl_duration >= 0

    @pytest.mark.asyncio
    async def test_max_pages_one(self):
        """Test max_pages=1 attempts only the base URL."""
        page = FakePage({BASE: ("Home", [BASE + "a", BASE + "b"])})

        summary = await crawl_website(page, _options(max_pages=1), dismisser=_no_modal())

        assert summary.total_pages == 1
        assert page.visits == [BASE]

    @pytest.mark.asyncio
    async def test_failed_base_url(self):
        """Test an unreachable base URL yields a one-page failed summary."""
        page = FakePage({})

        summary = await crawl_website(page, _options(), dismisser=_no_modal())

        assert summary.total_pages == 1
        assert summary.failed_pages == 1
        assert summary.successful_pages == 0
        assert summary.state == CrawlState.PARTIALLY_FAILED
        assert "Timeout" in summary.results[0].error
        assert summary.results[0].success is False

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_crawl(self):
        """Test a broken page is recorded and its siblings still crawled."""
        page = FakePage({
            BASE: ("Home", [BASE + "broken", BASE + "ok"]),
            BASE + "broken": RuntimeError("net::ERR_CONNECTION_RESET"),
            BASE + "ok": ("OK", []),
        })

        summary = await crawl_website(page, _options(), dismisser=_no_modal())

        assert summary.total_pages == 3
        assert summary.failed_pages == 1
        assert summary.results[1].error == "net::ERR_CONNECTION_RESET"
        assert summary.results[2].success

    @pytest.mark.asyncio
    async def test_non_2xx_response_is_page_error(self):
        """Test an HTTP error status is recorded as a failed page."""
        page = FakePage(
            {BASE: ("Home", [BASE + "missing"]), BASE + "missing": ("Not Found", [])},
            status_codes={BASE + "missing": 404},
        )

        summary = await crawl_website(page, _options(), dismisser=_no_modal())

        assert summary.results[1].error == f"HTTP 404 for {BASE}missing"
        assert summary.failed_pages == 1

    @pytest.mark.asyncio
    async def test_no_url_visited_twice(self):
        """Test URLs equal after normalization are fetched once."""
        page = FakePage({
            BASE: ("Home", [BASE + "a", BASE + "a/", BASE + "a#top", BASE + "?utm_source=x"]),
            BASE + "a": ("A", [BASE, BASE + "index.html"]),
        })

        summary = await crawl_website(page, _options(), dismisser=_no_modal())

        assert page.visits == [BASE, BASE + "a"]
        normalized = [r.normalized_url for r in summary.results]
        assert len(normalized) == len(set(normalized))

    @pytest.mark.asyncio
    async def test_default_and_custom_excludes(self):
        """Test built-in and caller exclude patterns are never fetched."""
        page = FakePage({
            BASE: ("Home", [BASE + "login", BASE + "cart", BASE + "blog/post", BASE + "docs"]),
            BASE + "docs": ("Docs", []),
        })

        summary = await crawl_website(
            page, _options(exclude_patterns=[r"/blog/"]), dismisser=_no_modal()
        )

        assert page.visits == [BASE, BASE + "docs"]
        assert summary.total_pages == 2

    @pytest.mark.asyncio
    async def test_stay_within_path(self):
        """Test URLs outside the path prefix are skipped."""
        base = BASE + "docs/"
        page = FakePage({
            base: ("Docs", [BASE + "docs/intro", BASE + "about"]),
            BASE + "docs/intro": ("Intro", []),
        })

        summary = await crawl_website(
            page,
            _options(base_url=base, stay_within_path="/docs"),
            dismisser=_no_modal(),
        )

        assert page.visits == [base, BASE + "docs/intro"]
        assert summary.total_pages == 2

    @pytest.mark.asyncio
    async def test_progress_events(self):
        """Test one progress event per attempted URL, before navigation."""
        page = FakePage(THREE_PAGE_SITE)
        events = []

        await crawl_website(page, _options(), on_progress=events.append, dismisser=_no_modal())

        assert [e.current_url for e in events] == [BASE, BASE + "about", BASE + "contact"]
        assert [e.processed for e in events] == [0, 1, 2]
        assert events[0].total == 1
        assert events[1].total == 2
        assert all(e.errors == 0 for e in events)
        assert all(e.total <= 10 for e in events)

    @pytest.mark.asyncio
    async def test_progress_total_capped_by_max_pages(self):
        """Test the total estimate never exceeds max_pages."""
        links = [f"{BASE}p{i}" for i in range(5)]
        pages = {BASE: ("Home", links)}
        pages.update({link: ("P", []) for link in links})
        events = []

        await crawl_website(
            FakePage(pages), _options(max_pages=3), on_progress=events.append, dismisser=_no_modal()
        )

        assert len(events) == 3
        assert events[1].total == 3

    @pytest.mark.asyncio
    async def test_cookie_dismissal_only_on_first_page(self):
        """Test the dismisser runs once, after the first successful load."""
        page = FakePage(THREE_PAGE_SITE)
        dismisser = AsyncMock(return_value=DismissOutcome(dismissed=True, method=DismissMethod.TEXT))

        await crawl_website(page, _options(), dismisser=dismisser)

        dismisser.assert_awaited_once_with(page)

    @pytest.mark.asyncio
    async def test_cookie_dismissal_disabled(self):
        """Test dismiss_cookies=False skips the dismisser."""
        dismisser = _no_modal()

        await crawl_website(FakePage(THREE_PAGE_SITE), _options(dismiss_cookies=False), dismisser=dismisser)

        dismisser.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_politeness_delay(self, monkeypatch):
        """Test the delay is applied between pages but not after the last."""
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("sitecrawl.site_crawler.asyncio.sleep", fake_sleep)

        await crawl_website(
            FakePage(THREE_PAGE_SITE),
            _options(delay_between_requests=250),
            dismisser=_no_modal(),
        )

        assert sleeps == [0.25, 0.25]


class TestExtractPageData:
    """Test cases for extract_page_data."""

    @pytest.mark.asyncio
    async def test_buckets_links(self):
        """Test links from the page script are split into internal and external."""
        page = MagicMock()
        page.evaluate = AsyncMock(return_value={
            "title": "Home",
            "html": "<html></html>",
            "links": [BASE + "about", "https://other.com/", BASE + "file.pdf"],
            "images": [BASE + "a.png", ""],
        })

        data = await extract_page_data(page, BASE)

        assert data.title == "Home"
        assert data.internal_links == [BASE + "about"]
        assert data.external_links == ["https://other.com/"]
        assert data.images == [BASE + "a.png"]


def _result(url, title="", links=(), error=None):
    from sitecrawl.url_normalizer import normalize_url
    return CrawlResult(
        url=url,
        normalized_url=normalize_url(url),
        file_path="x",
        title=title,
        internal_links=tuple(links),
        error=error,
    )


class TestLinkGraph:
    """Test cases for build_link_graph."""

    @pytest.mark.asyncio
    async def test_three_page_graph(self):
        """Test edges of the chained three-page site."""
        summary = await crawl_website(FakePage(THREE_PAGE_SITE), _options(), dismisser=_no_modal())

        graph = build_link_graph(summary.results)

        assert graph[BASE].outgoing_links == [BASE + "about"]
        assert graph[BASE].incoming_links == []
        assert graph[BASE + "about"].incoming_links == [BASE]
        assert graph[BASE + "about"].outgoing_links == [BASE + "contact"]
        assert graph[BASE + "contact"].incoming_links == [BASE + "about"]

    def test_failed_pages_are_not_nodes(self):
        """Test failed pages get no node and no edges point at them."""
        results = [
            _result(BASE, "Home", [BASE + "a", BASE + "broken"]),
            _result(BASE + "a", "A", [BASE]),
            _result(BASE + "broken", error="HTTP 500"),
        ]

        graph = build_link_graph(results)

        assert set(graph) == {BASE, BASE + "a"}
        assert graph[BASE].outgoing_links == [BASE + "a"]
        assert graph[BASE].incoming_links == [BASE + "a"]

    def test_uncrawled_targets_and_duplicates_ignored(self):
        """Test links to pages never crawled are dropped and edges are unique."""
        results = [
            _result(BASE, "Home", [BASE + "a", BASE + "a/", BASE + "never", BASE]),
            _result(BASE + "a", "A", []),
        ]

        graph = build_link_graph(results)

        assert graph[BASE].outgoing_links == [BASE + "a"]
        assert graph[BASE + "a"].incoming_links == [BASE]

    def test_edges_use_normalized_keys(self):
        """Test edges point at graph keys when crawled URLs are not canonical."""
        results = [
            _result("https://Example.com", "Home", ["https://example.com/about/"]),
            _result("https://example.com/about/", "About", ["https://EXAMPLE.com/#top"]),
        ]

        graph = build_link_graph(results)

        assert set(graph) == {BASE, BASE + "about"}
        assert graph[BASE].outgoing_links == [BASE + "about"]
        assert graph[BASE].incoming_links == [BASE + "about"]
        assert graph[BASE + "about"].incoming_links == [BASE]
        assert graph[BASE].url == "https://Example.com"
        for node in graph.values():
            for edge in node.outgoing_links + node.incoming_links:
                assert edge in graph

    def test_node_to_dict(self):
        """Test nodes serialize with their edges."""
        graph = build_link_graph([_result(BASE, "Home")])
        data = graph[BASE].to_dict()

        assert data["title"] == "Home"
        assert data["outgoing_links"] == []


class FakePool:
    """Hands out a single fake browser and records releases."""

    def __init__(self, browser=None, error=None):
        self._browser = browser
        self._error = error
        self.released = 0

    def browser(self):
        pool = self

        class _Lease:
            async def __aenter__(self):
                if pool._error:
                    raise pool._error
                return pool._browser

            async def __aexit__(self, exc_type, exc, tb):
                pool.released += 1
                return False

        return _Lease()


class TestSiteCrawler:
    """Test cases for SiteCrawler."""

    @pytest.mark.asyncio
    async def test_crawl_on_pooled_browser(self):
        """Test the job runs on one page that is closed afterwards."""
        page = FakePage(THREE_PAGE_SITE)
        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=page)
        pool = FakePool(browser)

        crawler = SiteCrawler(pool, dismisser=_no_modal())
        summary = await crawler.crawl(_options())

        assert summary.total_pages == 3
        browser.new_page.assert_awaited_once_with()
        assert page.closed is True
        assert pool.released == 1

    @pytest.mark.asyncio
    async def test_user_agent_passed_to_page(self):
        """Test a custom user agent is applied to the crawl page."""
        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=FakePage(THREE_PAGE_SITE))

        crawler = SiteCrawler(FakePool(browser), dismisser=_no_modal(), user_agent="TestBot/1.0")
        await crawler.crawl(_options())

        browser.new_page.assert_awaited_once_with(user_agent="TestBot/1.0")

    @pytest.mark.asyncio
    async def test_rejects_private_url_before_acquiring(self):
        """Test an unsafe start URL fails without touching the pool."""
        pool = FakePool(MagicMock())
        crawler = SiteCrawler(pool)

        with pytest.raises(InvalidUrlError):
            await crawler.crawl(_options(base_url="http://127.0.0.1/"))

        assert pool.released == 0

    @pytest.mark.asyncio
    async def test_pool_timeout_propagates(self):
        """Test a saturated pool surfaces PoolTimeoutError to the caller."""
        crawler = SiteCrawler(FakePool(error=PoolTimeoutError(100)))

        with pytest.raises(PoolTimeoutError):
            await crawler.crawl(_options())

    @pytest.mark.asyncio
    async def test_page_closed_when_crawl_raises(self):
        """Test the page is closed and the browser released on unexpected errors."""
        page = FakePage(THREE_PAGE_SITE)
        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=page)
        pool = FakePool(browser)

        def explode(progress):
            raise KeyError("callback bug")

        crawler = SiteCrawler(pool, dismisser=_no_modal())
        with pytest.raises(KeyError):
            await crawler.crawl(_options(), on_progress=explode)

        assert page.closed is True
        assert pool.released == 1
