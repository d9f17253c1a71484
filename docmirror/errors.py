"""Exception types raised while crawling."""


class CrawlerError(Exception):
    """Base class for crawler errors."""


class TransientFetchError(CrawlerError):
    """A page could not be fetched because of a timeout, network or render failure.

    These are retried by the scheduler.
    """


class ClassificationError(CrawlerError):
    """A page was fetched but could not be classified. Never retried."""


class PersistenceError(CrawlerError):
    """Creating a directory or writing an artifact failed."""


class CrawlStartupError(CrawlerError):
    """The rendering backend could not be initialised. Aborts the run."""
