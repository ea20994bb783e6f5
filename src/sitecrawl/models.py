"""Data models for crawl results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from datetime import datetime


class CrawlState(Enum):
    """Lifecycle of one crawl job."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"


@dataclass(frozen=True)
class CrawlResult:
    """One record per visited (or attempted) URL."""

    url: str
    normalized_url: str
    file_path: str
    title: str = ""
    html: str = ""
    internal_links: tuple[str, ...] = ()
    external_links: tuple[str, ...] = ()
    images: tuple[str, ...] = ()
    error: Optional[str] = None
    crawled_at: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        """Whether the page was fetched and extracted."""
        return self.error is None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "normalized_url": self.normalized_url,
            "file_path": self.file_path,
            "title": self.title,
            "html": self.html,
            "internal_links": list(self.internal_links),
            "external_links": list(self.external_links),
            "images": list(self.images),
            "error": self.error,
            "crawled_at": self.crawled_at.isoformat(),
        }


@dataclass
class CrawlProgress:
    """Progress snapshot emitted once per dequeued URL."""

    processed: int
    total: int
    queued: int
    current_url: str
    errors: int


@dataclass
class CrawlSummary:
    """Aggregate over one crawl job."""

    start_url: str
    total_pages: int
    successful_pages: int
    failed_pages: int
    total_images: int
    crawl_duration: float  # milliseconds
    results: list[CrawlResult] = field(default_factory=list)

    @classmethod
    def from_results(
        cls,
        start_url: str,
        results: list[CrawlResult],
        crawl_duration: float,
    ) -> "CrawlSummary":
        """Build the summary for a finished job."""
        failed = sum(1 for r in results if not r.success)
        return cls(
            start_url=start_url,
            total_pages=len(results),
            successful_pages=len(results) - failed,
            failed_pages=failed,
            total_images=sum(len(r.images) for r in results),
            crawl_duration=crawl_duration,
            results=list(results),
        )

    @property
    def state(self) -> CrawlState:
        """Terminal state of the job that produced this summary."""
        if self.failed_pages:
            return CrawlState.PARTIALLY_FAILED
        return CrawlState.SUCCEEDED

    def to_dict(self, include_html: bool = False) -> dict:
        """Convert to dictionary for JSON serialization."""
        results = []
        for result in self.results:
            data = result.to_dict()
            if not include_html:
                data.pop("html")
            results.append(data)

        return {
            "start_url": self.start_url,
            "total_pages": self.total_pages,
            "successful_pages": self.successful_pages,
            "failed_pages": self.failed_pages,
            "total_images": self.total_images,
            "crawl_duration": self.crawl_duration,
            "state": self.state.value,
            "results": results,
        }


@dataclass
class LinkGraphNode:
    """A successfully crawled page and its edges to other crawled pages."""

    url: str
    title: str
    file_path: str
    # Normalized URLs, i.e. keys of the graph
    outgoing_links: list[str] = field(default_factory=list)
    incoming_links: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "file_path": self.file_path,
            "outgoing_links": list(self.outgoing_links),
            "incoming_links": list(self.incoming_links),
        }
