import itertools
import logging
import os
import time

from slugify import slugify

from docmirror.errors import PersistenceError

logger = logging.getLogger(__name__)

_MAX_SLUG_LENGTH = 100
# Punctuation dropped outright instead of becoming a separator
_STRIPPED = [[c, ""] for c in "*+~.()'\"!:@"]


class PathAllocator:
    """
    Turn sibling order and page titles into file and directory names.

    Names are the order zero-padded to two digits followed by a slug of
    the title, so a directory listing sorts in the same order the site
    lists its pages. Non-Latin titles are transliterated.
    """

    def __init__(self, output_root):
        self.output_root = output_root
        self._placeholder_ids = itertools.count(1)

    def slug(self, title, placeholder="untitled"):
        """
        Convert a title to a filesystem-safe slug.

        Blank titles, and titles with nothing left after cleanup, get a
        timestamp-based placeholder so the result is never empty.

        Args:
            title (str): The page title.
            placeholder (str): Prefix for generated names.

        Returns:
            str: The slug.
        """
        cleaned = ""
        if title and title.strip():
            cleaned = slugify(
                title,
                lowercase=False,
                regex_pattern=None,
                max_length=_MAX_SLUG_LENGTH,
                word_boundary=True,
                save_order=True,
                replacements=_STRIPPED,
            )
        if not cleaned:
            cleaned = f"{placeholder}-{time.time_ns() // 1_000_000}-{next(self._placeholder_ids)}"
        return cleaned

    def file_name(self, order, title):
        return f"{order:02d}-{self.slug(title)}.md"

    def dir_name(self, order, title):
        return f"{order:02d}-{self.slug(title, placeholder='untitled-dir')}"

    def resolve(self, path_stack, name=None):
        """Join the output root, the path stack and an optional final name."""
        parts = [self.output_root, *path_stack]
        if name:
            parts.append(name)
        return os.path.join(*parts)

    def ensure_dir(self, path_stack):
        """
        Create the directory for a path stack if it does not exist.

        Args:
            path_stack (sequence): Directory names below the output root.

        Returns:
            str: The full directory path.

        Raises:
            PersistenceError: If the directory cannot be created.
        """
        path = self.resolve(path_stack)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create directory {path}: {e}") from e
        logger.debug(f"📁 Directory ready: {path}")
        return path


def save_file(path, content):
    """
    Write text content to a file, creating parent folders as needed.

    Args:
        path (str): Full file path.
        content (str): The content to write.

    Returns:
        str: The path written.

    Raises:
        PersistenceError: If the folder or file cannot be written.
    """
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path
    except OSError as e:
        raise PersistenceError(f"Error saving file {path}: {e}") from e


def count_markdown_files(base_folder):
    """Count .md files below a folder, recursively."""
    total = 0
    for _, _, files in os.walk(base_folder):
        total += sum(1 for f in files if f.endswith(".md"))
    return total
