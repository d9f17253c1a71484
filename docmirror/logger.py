import logging
import os

from docmirror.config import ERROR_FILE, LOG_FILE, LOG_FORMAT
from docmirror.file_utils import count_markdown_files


def setup_logging(output_dir, verbose=False):
    """
    Set up logging configuration.

    Logs go to the console, to a full log file, and error records also
    go to a separate error log, all under the output folder.

    Args:
        output_dir (str): Folder holding the log files.
        verbose (bool): Log at DEBUG instead of INFO.

    Returns:
        Logger: A configured logger instance.
    """
    os.makedirs(output_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    error_handler = logging.FileHandler(os.path.join(output_dir, ERROR_FILE), encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(os.path.join(output_dir, LOG_FILE), encoding="utf-8"),
            error_handler,
            logging.StreamHandler(),
        ],
        force=True,
    )
    # Selenium and urllib3 are chatty at DEBUG
    for name in ("selenium", "urllib3", "WDM"):
        logging.getLogger(name).setLevel(logging.WARNING)
    return logging.getLogger("docmirror")


def log_summary(summary, output_dir):
    """
    Log the final crawl counters and the number of files on disk.

    Args:
        summary (CrawlSummary): Counters returned by the crawler.
        output_dir (str): The output folder to scan.

    Returns:
        int: Number of Markdown files found.
    """
    logger = logging.getLogger("docmirror")
    md_count = count_markdown_files(output_dir)
    logger.info("\n📊 Crawl Summary:")
    logger.info(f"  - Pages processed: {summary.processed_count}")
    logger.info(f"  - Pages failed: {summary.error_count}")
    logger.info(f"  - URLs visited: {summary.visited_count}")
    logger.info(f"  - Markdown files: {md_count}")
    if summary.elapsed_seconds is not None:
        logger.info(f"  - Elapsed: {summary.elapsed_seconds:.1f}s")
    return md_count
