"""Command-line interface for the site crawler."""

import asyncio
import logging
import sys
import json
from typing import Optional

from pydantic import ValidationError

from sitecrawl.config import CrawlDefaults, settings
from sitecrawl.crawl_config import CrawlOptions
from sitecrawl.exceptions import SiteCrawlError
from sitecrawl.infrastructure.browser_pool import BrowserPool
from sitecrawl.logging_config import setup_logging
from sitecrawl.models import CrawlProgress, CrawlSummary
from sitecrawl.site_crawler import SiteCrawler, build_link_graph

logger = logging.getLogger(__name__)


def _print_progress(progress: CrawlProgress) -> None:
    print(f"[{progress.processed + 1}/{progress.total}] {progress.current_url}")


async def _run_crawl(options: CrawlOptions, allow_localhost: bool = False) -> CrawlSummary:
    """Crawl one site on a short-lived pool.

    Args:
        options: Validated crawl options
        allow_localhost: Permit localhost start URLs

    Returns:
        CrawlSummary for the job
    """
    async with BrowserPool.from_settings(settings) as pool:
        crawler = SiteCrawler(
            pool,
            user_agent=settings.USER_AGENT,
            allow_localhost=allow_localhost,
        )
        return await crawler.crawl(options, on_progress=_print_progress)


def print_summary(summary: CrawlSummary) -> None:
    """Print a crawl summary in a formatted way."""
    print(f"\n{'=' * 60}")
    print(f"Crawl of: {summary.start_url}")
    print(f"{'=' * 60}")
    print(f"  Pages attempted: {summary.total_pages}")
    print(f"  Successful: {summary.successful_pages}")
    print(f"  Failed: {summary.failed_pages}")
    print(f"  Images found: {summary.total_images}")
    print(f"  Duration: {summary.crawl_duration / 1000:.1f}s")

    failed = [r for r in summary.results if not r.success]
    if failed:
        print("\nFailed pages:")
        for result in failed:
            print(f"  • {result.url}: {result.error}")

    print(f"\n{'=' * 60}\n")


def build_report(summary: CrawlSummary, include_html: bool = False) -> dict:
    """Combine the summary and link graph into one JSON-ready document."""
    graph = build_link_graph(summary.results)
    report = summary.to_dict(include_html=include_html)
    report["link_graph"] = {key: node.to_dict() for key, node in graph.items()}
    return report


def build_parser():
    import argparse

    defaults = CrawlDefaults.from_env()

    parser = argparse.ArgumentParser(
        prog="sitecrawl",
        description="Crawl a website breadth-first with a headless browser",
    )
    parser.add_argument("url", help="Starting URL of the crawl")
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help=f"Maximum pages to attempt (default: {defaults.max_pages})",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=None,
        help=f"Milliseconds to wait between pages (default: {defaults.delay_between_requests})",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"Navigation timeout in milliseconds (default: {defaults.timeout})",
    )
    parser.add_argument(
        "--stay-within",
        dest="stay_within_path",
        help="Only crawl URLs under this path (e.g. /docs)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="REGEX",
        help="Skip URLs matching this pattern (repeatable)",
    )
    parser.add_argument(
        "--no-cookies",
        dest="dismiss_cookies",
        action="store_false",
        default=None,
        help="Do not try to dismiss cookie consent modals",
    )
    parser.add_argument(
        "--config",
        help="JSON file with crawl defaults (see CrawlDefaults)",
    )
    parser.add_argument(
        "--allow-localhost",
        action="store_true",
        help="Permit crawling localhost (development only)",
    )
    parser.add_argument(
        "--output",
        "-o",
        help="Write summary and link graph JSON to this file",
    )
    parser.add_argument(
        "--include-html",
        action="store_true",
        help="Include page HTML in the JSON output",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to console",
    )
    return parser


def main(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(level=args.log_level, log_file=args.log_file)

    defaults = CrawlDefaults.from_file(args.config) if args.config else None

    try:
        options = CrawlOptions.from_defaults(
            args.url,
            defaults,
            max_pages=args.max_pages,
            delay_between_requests=args.delay,
            timeout=args.timeout,
            dismiss_cookies=args.dismiss_cookies,
            stay_within_path=args.stay_within_path,
            exclude_patterns=args.exclude or None,
        )
    except ValidationError as e:
        print(f"Error: invalid options\n{e}")
        sys.exit(2)

    try:
        summary = asyncio.run(_run_crawl(options, allow_localhost=args.allow_localhost))
    except SiteCrawlError as e:
        logger.error(f"Crawl failed: {e}")
        print(f"Error: {e}")
        sys.exit(1)

    print_summary(summary)

    if args.output:
        output = json.dumps(build_report(summary, args.include_html), indent=2, default=str)
        with open(args.output, "w") as f:
            f.write(output)
        print(f"Results written to {args.output}")

    if summary.successful_pages == 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
