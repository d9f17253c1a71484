"""
Page classification for the documentation crawler.

Decides whether a rendered page is a catalog (navigation to child
pages), a content leaf (persisted as Markdown), or unknown. Structural
markers found by the renderer are authoritative; when they are absent a
fixed sequence of content heuristics is applied to the converted
Markdown and the page's valid links.
"""

import logging
import re
from typing import Iterable, Sequence, Tuple
from urllib.parse import urldefrag, urljoin, urlparse

from docmirror.config import ClassificationConfig
from docmirror.models import (
    CatalogPage,
    ContentPage,
    FetchedPage,
    Link,
    PageSignals,
    PageType,
    UnknownPage,
)

logger = logging.getLogger(__name__)

_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING_RE = re.compile(r"#+ ")
_NEWLINES_RE = re.compile(r"[\r\n]+")
_FENCED_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`]+`")
_INDENTED_RE = re.compile(r"^\s{4}", re.MULTILINE)
_LIST_ITEM_RE = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)


def visible_text(markdown):
    """Strip links, images and heading markers and fold lines into one string."""
    text = _IMAGE_RE.sub("", markdown)
    text = _LINK_RE.sub("", text)
    text = _HEADING_RE.sub("", text)
    text = _NEWLINES_RE.sub(" ", text)
    return text.strip()


def count_code_blocks(markdown):
    """Count fenced blocks, inline code spans and indented code lines."""
    return (
        len(_FENCED_RE.findall(markdown))
        + len(_INLINE_CODE_RE.findall(markdown))
        + len(_INDENTED_RE.findall(markdown))
    )


def measure(page: FetchedPage, markdown: str) -> PageSignals:
    """
    Derive classification signals from a fetched page and its Markdown.

    Args:
        page: The page as returned by the renderer.
        markdown: The page body converted to Markdown.

    Returns:
        PageSignals: Structural markers plus content measurements.
    """
    return PageSignals(
        has_directory_marker=page.has_directory_marker,
        has_content_marker=page.has_content_marker,
        has_body=bool(page.raw_body and page.raw_body.strip()),
        content_length=len(visible_text(markdown)),
        code_block_count=count_code_blocks(markdown),
        list_item_count=len(_LIST_ITEM_RE.findall(markdown)),
        body_text=markdown,
    )


class PageClassifier:
    """
    Classify pages as catalog, content or unknown.

    The classifier is stateless after construction; the same inputs
    always produce the same answer, so one instance is shared by all
    worker threads.
    """

    def __init__(self, config: ClassificationConfig = None):
        self.config = config or ClassificationConfig()
        self._navigation = [re.compile(p) for p in self.config.navigation_patterns]
        self._href_pattern = (
            re.compile(self.config.link_href_pattern) if self.config.link_href_pattern else None
        )

    def is_navigation_link(self, text):
        text = text.strip()
        return any(pattern.search(text) for pattern in self._navigation)

    def filter_links(self, links: Iterable[Link], page_url: str) -> Tuple[Link, ...]:
        """
        Keep only links that point to other documentation pages.

        A link is valid when it has anchor text and a target, the target
        is not an in-page anchor and not the current page, and the text
        is not a navigational phrase such as "next article:". Order is
        preserved since it decides sibling numbering.

        Args:
            links: Raw links in document order.
            page_url: URL of the page the links were found on.

        Returns:
            tuple: Valid links with surrounding whitespace stripped.
        """
        current = urldefrag(page_url)[0]
        valid = []
        for link in links:
            text = (link.text or "").strip()
            href = (link.href or "").strip()
            if not text or not href or href.startswith("#"):
                continue
            target = urldefrag(urljoin(page_url, href))[0]
            if target == current or urlparse(target).scheme not in ("http", "https"):
                continue
            if self._href_pattern and not self._href_pattern.search(href):
                continue
            if self.is_navigation_link(text):
                continue
            valid.append(Link(text=text, href=href))
        return tuple(valid)

    def classify(self, signals: PageSignals, links: Sequence[Link]) -> PageType:
        """
        Classify a page from its signals and its valid links.

        Args:
            signals: Structural markers and content measurements.
            links: Links that already passed filter_links.

        Returns:
            PageType: The decided page type.
        """
        if signals.has_directory_marker:
            logger.debug("Directory marker present, classified as catalog")
            return PageType.CATALOG
        if signals.has_content_marker:
            logger.debug("Document marker present, classified as content")
            return PageType.CONTENT
        if not signals.has_body:
            return PageType.UNKNOWN
        return self._classify_by_content(signals, links)

    def _classify_by_content(self, signals, links):
        cfg = self.config
        content_length = signals.content_length
        link_count = len(links)

        if link_count == 0:
            return PageType.CONTENT

        if signals.code_block_count >= cfg.code_block_threshold or content_length >= cfg.rich_content_length:
            return PageType.CONTENT

        if content_length < cfg.tiny_content_length and link_count >= cfg.tiny_min_links:
            return PageType.CATALOG
        if content_length < cfg.short_content_length and link_count >= cfg.short_min_links:
            return PageType.CATALOG
        if content_length < cfg.medium_content_length and link_count >= cfg.medium_min_links:
            return PageType.CATALOG

        density = (link_count * 100) / content_length if content_length > 0 else 0
        if density > cfg.link_density_threshold and link_count >= cfg.link_density_min_links:
            return PageType.CATALOG

        if (
            self._has_catalog_keyword(signals.body_text, links)
            and link_count >= cfg.keyword_min_links
            and content_length < cfg.keyword_max_content_length
        ):
            return PageType.CATALOG

        list_items = signals.list_item_count
        if list_items >= cfg.list_min_items and link_count >= list_items * cfg.list_link_coverage:
            return PageType.CATALOG

        link_text_length = sum(len(link.text) for link in links)
        ratio = link_text_length / content_length if content_length > 0 else 0
        if (
            ratio > cfg.link_text_ratio
            and link_count >= cfg.link_text_min_links
            and content_length < cfg.link_text_max_content_length
        ):
            return PageType.CATALOG

        return PageType.CONTENT

    def _has_catalog_keyword(self, body_text, links):
        for keyword in self.config.catalog_keywords:
            if keyword in body_text or any(keyword in link.text for link in links):
                return True
        return False

    def classify_page(self, page: FetchedPage, markdown: str):
        """
        Classify a fetched page and build the matching result variant.

        Returns:
            CatalogPage, ContentPage or UnknownPage.
        """
        links = self.filter_links(page.links, page.url)
        signals = measure(page, markdown)
        page_type = self.classify(signals, links)
        logger.info(
            f"🔎 Classified {page.url} as {page_type.value} "
            f"(text={signals.content_length}, links={len(links)})"
        )
        if page_type is PageType.CATALOG:
            return CatalogPage(url=page.url, title=page.title, links=links)
        if page_type is PageType.CONTENT:
            return ContentPage(url=page.url, title=page.title, markdown=markdown)
        return UnknownPage(url=page.url, title=page.title, reason="no content body extracted")

