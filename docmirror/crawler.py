"""
Crawl orchestration.

Ties the renderer, converter, classifier, path allocator, scheduler and
checkpoint store together. For every task a worker fetches the page,
converts its body, classifies it, and then either queues the page's
children (catalog) or writes one Markdown file (content).
"""

import logging
import os
import threading
import time
from functools import partial

from docmirror.browser_utils import SeleniumRenderer
from docmirror.classifier import PageClassifier
from docmirror.config import CrawlOptions
from docmirror.content_processor import MarkdownConverter, normalize_url
from docmirror.errors import ClassificationError, CrawlStartupError, PersistenceError
from docmirror.file_utils import PathAllocator, save_file
from docmirror.models import CatalogPage, ContentPage, CrawlSummary, CrawlTask
from docmirror.scheduler import TaskScheduler
from docmirror.state import CrawlStateStore

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """
    Mirror a documentation tree starting from one URL.

    Args:
        options (CrawlOptions): Static crawl configuration.
        renderer_factory (callable, optional): Builds one renderer per worker.
            Defaults to a Selenium renderer configured from the options.
        converter (MarkdownConverter, optional): HTML to Markdown conversion.
        classifier (PageClassifier, optional): Page type decisions.
        state_store (CrawlStateStore, optional): Checkpoint persistence.
        sleep (callable, optional): Backoff sleep, replaceable in tests.
    """

    def __init__(
        self,
        options: CrawlOptions,
        renderer_factory=None,
        converter=None,
        classifier=None,
        state_store=None,
        sleep=time.sleep,
    ):
        self.options = options
        self.renderer_factory = renderer_factory or partial(
            SeleniumRenderer,
            selectors=options.selectors,
            headless=options.headless,
            page_timeout=options.page_timeout,
        )
        self.converter = converter or MarkdownConverter()
        self.classifier = classifier or PageClassifier(options.classification)
        self.paths = PathAllocator(options.output_dir)
        self.state_store = state_store or CrawlStateStore(options.state_path)
        self.scheduler = TaskScheduler(
            concurrency=options.concurrency,
            max_depth=options.max_depth,
            max_retries=options.max_retries,
            retry_delay=options.retry_delay,
            checkpoint_interval=options.checkpoint_interval,
            on_checkpoint=self.state_store.save,
            sleep=sleep,
        )
        self._renderers = []
        self._cleanup_lock = threading.Lock()
        self._cleaned_up = False
        self._started_at = None

    def run(self):
        """
        Run the crawl to completion or until shutdown is requested.

        Returns:
            CrawlSummary: Final counters.

        Raises:
            CrawlStartupError: If the output folder or the renderers cannot be
                created. No task runs in that case.
        """
        opts = self.options
        logger.info(f"🚀 Starting crawl at {opts.start_url}")
        logger.info(
            f"   output={os.path.abspath(opts.output_dir)} concurrency={opts.concurrency} "
            f"max_depth={opts.max_depth} retries={opts.max_retries} headless={opts.headless}"
        )
        try:
            os.makedirs(opts.output_dir, exist_ok=True)
        except OSError as e:
            raise CrawlStartupError(f"Cannot create output folder {opts.output_dir}: {e}") from e

        if opts.resume:
            state = self.state_store.load()
            if state:
                self.scheduler.restore(state)
            else:
                logger.info("No usable checkpoint found, starting fresh")

        self._started_at = time.monotonic()
        self._renderers = self._start_renderers()
        try:
            start_url = normalize_url(opts.start_url, opts.start_url)
            if self.scheduler.enqueue(start_url, (), 0, 1) is None:
                logger.info(f"Start URL {start_url} already visited, nothing to crawl")
            self.scheduler.run(self.process_task, self._renderers)
        finally:
            self._cleanup()

        summary = self.status()
        logger.info(
            f"🎉 Crawl finished: {summary.processed_count} processed, "
            f"{summary.error_count} errors, {summary.visited_count} visited"
        )
        return summary

    def shutdown(self):
        """
        Request a graceful stop. Safe to call from a signal handler.

        Queued tasks are dropped, in-flight tasks finish, and run() then
        writes a final checkpoint and closes the renderers.
        """
        self.scheduler.stop()

    def status(self):
        elapsed = time.monotonic() - self._started_at if self._started_at is not None else None
        return CrawlSummary(
            processed_count=self.scheduler.processed_count,
            error_count=self.scheduler.error_count,
            visited_count=self.scheduler.visited_count,
            pending_count=self.scheduler.pending_count,
            elapsed_seconds=elapsed,
        )

    def process_task(self, task: CrawlTask, renderer):
        """
        Fetch, classify and handle one page.

        Transient fetch errors propagate so the scheduler can retry them.

        Raises:
            TransientFetchError: When the renderer cannot load the page.
            ClassificationError: When the page cannot be classified.
        """
        logger.info(f"📄 Processing {task.url} (depth {task.depth}, order {task.order})")
        page = renderer.fetch(task.url)
        markdown = self.converter.to_markdown(page.raw_body, page.url)
        result = self.classifier.classify_page(page, markdown)

        if isinstance(result, CatalogPage):
            self._process_catalog(result, task)
        elif isinstance(result, ContentPage):
            self._process_content(result, task)
        else:
            raise ClassificationError(f"Unknown page type for {task.url}: {result.reason}")

    def _process_catalog(self, page: CatalogPage, task: CrawlTask):
        path_stack = task.path_stack
        if page.title and task.depth > 0:
            path_stack = task.path_stack + (self.paths.dir_name(task.order, page.title),)
            try:
                path = self.paths.ensure_dir(path_stack)
                logger.info(f"📁 Created directory {path}")
            except PersistenceError as e:
                logger.error(f"Directory for catalog page {page.url} failed: {e}")

        queued = 0
        for order, link in enumerate(page.links, start=1):
            child_url = normalize_url(link.href, page.url)
            if self.scheduler.enqueue(child_url, path_stack, task.depth + 1, order):
                queued += 1
        logger.info(f"📂 Catalog page {page.title or page.url}: {len(page.links)} links, {queued} queued")

    def _process_content(self, page: ContentPage, task: CrawlTask):
        name = self.paths.file_name(task.order, page.title)
        path = self.paths.resolve(task.path_stack, name)
        document = self.converter.create_document(page.title, page.url, page.markdown)
        try:
            save_file(path, document)
            logger.info(f"✅ Saved {page.title or page.url} -> {path}")
        except PersistenceError as e:
            logger.error(f"Saving content page {page.url} failed: {e}")

    def _start_renderers(self):
        renderers = []
        try:
            for _ in range(self.options.concurrency):
                renderers.append(self.renderer_factory())
        except Exception as e:
            self._close_renderers(renderers)
            if isinstance(e, CrawlStartupError):
                raise
            raise CrawlStartupError(f"Cannot start renderer: {e}") from e
        logger.info(f"🧭 Started {len(renderers)} browser sessions")
        return renderers

    def _cleanup(self):
        with self._cleanup_lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True
        logger.info("🧹 Saving final checkpoint and closing browsers")
        self.state_store.save(self.scheduler.snapshot())
        self._close_renderers(self._renderers)
        self._renderers = []

    def _close_renderers(self, renderers):
        for renderer in renderers:
            try:
                renderer.close()
            except Exception as e:
                logger.warning(f"Error closing renderer: {e}")
