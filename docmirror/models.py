"""
Data model shared by the crawler components.

Page results are a closed set of variants, one per page type, each
carrying only the fields that matter for that type.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union


class PageType(str, Enum):
    CATALOG = "catalog"
    CONTENT = "content"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Link:
    text: str
    href: str


@dataclass(frozen=True)
class CrawlTask:
    """A single URL waiting to be fetched.

    Attributes:
        url: Normalised page URL.
        path_stack: Directory names from the output root to this page's parent.
        depth: Catalog hops from the start URL.
        order: 1-based position among the siblings of the parent catalog page.
    """

    url: str
    path_stack: Tuple[str, ...] = ()
    depth: int = 0
    order: int = 1


@dataclass(frozen=True)
class FetchedPage:
    """What the rendering backend returns for one URL."""

    url: str
    title: str = ""
    has_directory_marker: bool = False
    has_content_marker: bool = False
    raw_body: str = ""
    links: Tuple[Link, ...] = ()


@dataclass(frozen=True)
class PageSignals:
    """Measurements the classifier decides on."""

    has_directory_marker: bool = False
    has_content_marker: bool = False
    has_body: bool = True
    content_length: int = 0
    code_block_count: int = 0
    list_item_count: int = 0
    body_text: str = ""


@dataclass(frozen=True)
class CatalogPage:
    url: str
    title: str
    links: Tuple[Link, ...] = ()

    @property
    def type(self):
        return PageType.CATALOG


@dataclass(frozen=True)
class ContentPage:
    url: str
    title: str
    markdown: str = ""

    @property
    def type(self):
        return PageType.CONTENT


@dataclass(frozen=True)
class UnknownPage:
    url: str
    title: str
    reason: str = ""

    @property
    def type(self):
        return PageType.UNKNOWN


PageResult = Union[CatalogPage, ContentPage, UnknownPage]


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat()


def _is_count(value):
    # bool is a subclass of int
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class CrawlState:
    """Durable checkpoint of a crawl."""

    visited_urls: FrozenSet[str] = frozenset()
    processed_count: int = 0
    error_count: int = 0
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self):
        return {
            "visitedUrls": sorted(self.visited_urls),
            "processedCount": self.processed_count,
            "errorCount": self.error_count,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data):
        """Build a state from its JSON form.

        Raises:
            ValueError: If a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("checkpoint must be a JSON object")
        visited = data.get("visitedUrls", [])
        processed = data.get("processedCount", 0)
        errors = data.get("errorCount", 0)
        timestamp = data.get("timestamp") or utc_timestamp()
        if not isinstance(visited, list) or not all(isinstance(u, str) for u in visited):
            raise ValueError("visitedUrls must be a list of strings")
        if not _is_count(processed) or not _is_count(errors):
            raise ValueError("counters must be integers")
        return cls(
            visited_urls=frozenset(visited),
            processed_count=processed,
            error_count=errors,
            timestamp=str(timestamp),
        )

    @classmethod
    def capture(cls, visited_urls: Iterable[str], processed_count: int, error_count: int):
        return cls(frozenset(visited_urls), processed_count, error_count, utc_timestamp())


@dataclass(frozen=True)
class CrawlSummary:
    processed_count: int
    error_count: int
    visited_count: int
    pending_count: int = 0
    elapsed_seconds: Optional[float] = None
