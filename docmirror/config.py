"""
Configuration settings for the documentation mirror crawler.

This module defines defaults read from the environment, the static
options passed into the crawler, and the declarative classification
profile that tunes the page classifier to one documentation site.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# Crawl defaults
START_URL = os.getenv("DOCMIRROR_START_URL", "https://help.aliyun.com/document_detail/2584339.html")
OUTPUT_DIR = os.getenv("DOCMIRROR_OUTPUT_DIR", "./output")
CONCURRENCY = int(os.getenv("DOCMIRROR_CONCURRENCY", "8"))
MAX_DEPTH = int(os.getenv("DOCMIRROR_MAX_DEPTH", "999"))
MAX_RETRIES = int(os.getenv("DOCMIRROR_MAX_RETRIES", "2"))
RETRY_DELAY = float(os.getenv("DOCMIRROR_RETRY_DELAY", "0.5"))
PAGE_TIMEOUT = float(os.getenv("DOCMIRROR_PAGE_TIMEOUT", "20"))
CHECKPOINT_INTERVAL = int(os.getenv("DOCMIRROR_CHECKPOINT_INTERVAL", "10"))
HEADLESS = _env_bool("DOCMIRROR_HEADLESS", True)

# File names under the output root
STATE_FILE = "crawler_state.json"
LOG_FILE = "crawler.log"
ERROR_FILE = "errors.log"

# Logging format
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_ARGUMENTS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--disable-extensions",
    "--disable-default-apps",
    "--disable-sync",
    "--mute-audio",
)


@dataclass(frozen=True)
class SiteSelectors:
    """CSS selectors the renderer uses to read one documentation site."""

    content: str = ".aliyun-docs-content"
    title: str = "h1"
    document_links: str = 'a[href*="document_detail"]'
    directory_marker: str = ".markdown-body .directory"
    document_marker: str = '.markdown-body .icms-help-docs-content[lang="zh"]'


@dataclass(frozen=True)
class ClassificationConfig:
    """
    Declarative profile for the page classifier.

    The thresholds mirror the fixed rule sequence of the classifier and
    were tuned against a single documentation site. Supplying a different
    profile retargets the same classifier to another site.
    """

    code_block_threshold: int = 5
    rich_content_length: int = 2000

    tiny_content_length: int = 100
    tiny_min_links: int = 1
    short_content_length: int = 300
    short_min_links: int = 2
    medium_content_length: int = 800
    medium_min_links: int = 5

    link_density_threshold: float = 2.0
    link_density_min_links: int = 3

    keyword_min_links: int = 3
    keyword_max_content_length: int = 1000

    list_min_items: int = 3
    list_link_coverage: float = 0.7

    link_text_ratio: float = 0.5
    link_text_min_links: int = 3
    link_text_max_content_length: int = 800

    catalog_keywords: Tuple[str, ...] = (
        "目录", "列表", "导航", "索引", "指南", "概述",
        "分类", "目录列表", "功能列表", "产品", "服务",
        "Contents", "Overview", "Index", "Guide", "Directory",
    )

    navigation_patterns: Tuple[str, ...] = (
        r"^上一篇[:|：]",
        r"^下一篇[:|：]",
        r"^相关文档",
        r"^参考文档",
        r"^更多信息",
        r"^详情请参见",
        r"具体操作请参见",
        r"具体内容参见",
        r"^(?i:previous article)\s*:",
        r"^(?i:next article)\s*:",
        r"^(?i:see also)",
        r"^(?i:related documents?)",
        r"^(?i:for more information,? see)",
    )

    # Valid link targets must match this pattern when set
    link_href_pattern: Optional[str] = r"document_detail"


@dataclass(frozen=True)
class CrawlOptions:
    """Static options for one crawl run."""

    start_url: str = START_URL
    output_dir: str = OUTPUT_DIR
    concurrency: int = CONCURRENCY
    max_depth: int = MAX_DEPTH
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    page_timeout: float = PAGE_TIMEOUT
    checkpoint_interval: int = CHECKPOINT_INTERVAL
    headless: bool = HEADLESS
    resume: bool = False
    selectors: SiteSelectors = field(default_factory=SiteSelectors)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        if self.checkpoint_interval < 1:
            raise ValueError(f"checkpoint_interval must be at least 1, got {self.checkpoint_interval}")

    def with_dry_run(self):
        """Return a copy limited to the start page and its direct children."""
        return replace(self, max_depth=1)

    @property
    def state_path(self):
        return os.path.join(self.output_dir, STATE_FILE)
