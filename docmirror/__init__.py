"""
Documentation mirror crawler package.

Recursively discovers a tree of documentation pages from a single start
URL, classifies each page as a navigational catalog or a content leaf,
and mirrors the site's hierarchy on disk as numbered directories and
Markdown files.

The crawl runs on a bounded pool of worker threads, each with its own
browser session, and can be checkpointed and resumed.
"""

__version__ = "1.0.0"
