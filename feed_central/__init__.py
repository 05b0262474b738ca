"""
feed_central - feed acquisition and balanced article listings.

This package fetches third-party feeds politely (per-origin spacing and
retries) and serves paginated listings that represent every contributing
source fairly.

Main entry point is the CLI via the `feed-central` command.

Example:
    $ feed-central list articles.json --category world --page 2
"""

__all__ = [
    "__version__",
    "Article",
    "ListingPage",
    "EphemeralCache",
    "FeedFetcher",
    "DistributionEngine",
    "ListingService",
]
__version__ = "0.1.0"

from .cache import EphemeralCache
from .core.types import Article, ListingPage
from .distribution.engine import DistributionEngine
from .fetch.fetcher import FeedFetcher
from .serving import ListingService
