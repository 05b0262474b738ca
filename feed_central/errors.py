"""
Exception taxonomy for feed fetching and listing.

Transient fetch failures (RateLimited, Forbidden, FetchTimeout, NetworkError)
are absorbed by the fetcher's retry loop; only FetchExhausted escapes it.
InvalidSortMode is a client-input error. SourceSubqueryFailed is isolated to
one source during balanced fan-out and never aborts a page.
"""

from __future__ import annotations


class FeedCentralError(Exception):
    """Base class for all errors raised by this package."""


class FetchError(FeedCentralError):
    """A single fetch attempt failed."""

    kind = "error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(FetchError):
    kind = "rate_limited"


class Forbidden(FetchError):
    kind = "forbidden"


class FetchTimeout(FetchError):
    kind = "timeout"


class NetworkError(FetchError):
    kind = "network"


class FetchExhausted(FetchError):
    """All attempts for one location failed.

    Attributes:
        location: The URL that could not be fetched
        attempts: Number of attempts made
        last_error: The failure of the final attempt
    """

    kind = "exhausted"

    def __init__(self, location: str, attempts: int, last_error: FetchError | None):
        detail = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(
            f"Failed to fetch {location} after {attempts} attempts: {detail}",
            status_code=last_error.status_code if last_error else None,
        )
        self.location = location
        self.attempts = attempts
        self.last_error = last_error


class InvalidSortMode(FeedCentralError, ValueError):
    def __init__(self, sort: str, allowed: tuple[str, ...]):
        super().__init__(f"Invalid sort mode {sort!r}; expected one of: {', '.join(allowed)}")
        self.sort = sort
        self.allowed = allowed


class SourceSubqueryFailed(FeedCentralError):
    def __init__(self, source: str, cause: BaseException):
        super().__init__(f"Sub-query for source {source!r} failed: {type(cause).__name__}: {cause}")
        self.source = source
        self.cause = cause


class ArticleNotFound(FeedCentralError, LookupError):
    def __init__(self, article_id: str):
        super().__init__(f"Article not found: {article_id}")
        self.article_id = article_id


class UnknownCategory(FeedCentralError, LookupError):
    def __init__(self, category: str):
        super().__init__(f"No sources found for category: {category}")
        self.category = category
