"""
Main entry point for the documentation mirror crawler.

Parses command line options, sets up logging and signal handling, and
runs the crawl.
"""

import argparse
import logging
import os
import signal
import sys

from docmirror import __version__, config
from docmirror.config import CrawlOptions
from docmirror.crawler import CrawlOrchestrator
from docmirror.errors import CrawlStartupError
from docmirror.logger import log_summary, setup_logging

logger = logging.getLogger(__name__)


def _bool_arg(value):
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="docmirror",
        description="Mirror a documentation site as a numbered tree of Markdown files",
    )
    parser.add_argument("-u", "--url", default=config.START_URL, help="Start URL")
    parser.add_argument("-o", "--out-dir", default=config.OUTPUT_DIR, help="Output directory")
    parser.add_argument("-c", "--concurrency", type=int, default=config.CONCURRENCY, help="Number of parallel browsers")
    parser.add_argument("-d", "--max-depth", type=int, default=config.MAX_DEPTH, help="Maximum crawl depth")
    parser.add_argument("--headless", type=_bool_arg, default=config.HEADLESS, help="Headless mode (true/false)")
    parser.add_argument("--dry-run", action="store_true", help="Only process the start page and its direct links")
    parser.add_argument("--resume", action="store_true", help="Resume from the saved checkpoint if present")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args):
    options = CrawlOptions(
        start_url=args.url,
        output_dir=os.path.abspath(args.out_dir),
        concurrency=args.concurrency,
        max_depth=args.max_depth,
        headless=args.headless,
        resume=args.resume,
    )
    if args.dry_run:
        options = options.with_dry_run()
    return options


def main(argv=None):
    """
    Main entry point for the crawler.

    Returns:
        int: Process exit code. Per-page errors still exit with 0; the
        summary reports them.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        options = options_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(options.output_dir, verbose=args.verbose)
    if args.dry_run:
        logger.info("⚠️ Dry run: only the start page and its direct links are processed")

    crawler = CrawlOrchestrator(options)

    def handle_signal(signum, frame):
        logger.info(f"🛑 Received {signal.Signals(signum).name}, shutting down gracefully...")
        crawler.shutdown()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        summary = crawler.run()
    except CrawlStartupError as e:
        logger.error(f"❌ Crawl failed to start: {e}")
        return 1

    log_summary(summary, options.output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
