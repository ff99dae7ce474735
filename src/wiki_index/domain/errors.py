class WikiIndexError(Exception):
    """Base class for errors raised by the indexer."""


class MalformedDumpError(WikiIndexError):
    """The dump stream violates the expected page grammar."""


class PoolShutdownError(WikiIndexError):
    """A task was submitted after the worker pool stopped accepting work."""


class BackendError(WikiIndexError):
    """The search backend answered with an unexpected status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
