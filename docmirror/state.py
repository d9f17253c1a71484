"""
Checkpoint persistence for resumable crawls.

The checkpoint is a single JSON file holding the visited URLs and the
processed/error counters. Each save replaces the previous file; there
is no history.
"""

import json
import logging
import os
import tempfile

from docmirror.models import CrawlState

logger = logging.getLogger(__name__)


class CrawlStateStore:
    """Save and load the crawl checkpoint at a fixed path."""

    def __init__(self, path):
        self.path = path

    def save(self, state: CrawlState):
        """
        Write the checkpoint, replacing any earlier one.

        The file is written to a temporary sibling and moved into place, so
        a crash mid-write never leaves a truncated checkpoint behind.

        Args:
            state (CrawlState): The state to persist.

        Returns:
            bool: True if the checkpoint was written, False otherwise.
        """
        folder = os.path.dirname(self.path) or "."
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=folder, prefix=".state-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state.to_dict(), f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Error saving crawl state to {self.path}: {e}")
            return False
        logger.debug(
            f"💾 Checkpoint saved: {len(state.visited_urls)} visited, "
            f"{state.processed_count} processed, {state.error_count} errors"
        )
        return True

    def load(self):
        """
        Read the last checkpoint.

        Returns:
            CrawlState or None: The saved state, or None when there is no
            checkpoint or it cannot be read or parsed.
        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return CrawlState.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable crawl state {self.path}: {e}")
            return None
