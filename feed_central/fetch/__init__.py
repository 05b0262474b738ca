"""
Feed fetching.

This package handles rate-limited, retrying HTTP acquisition of raw
feed payloads.
"""

from .fetcher import FeedFetcher, FetchResult, build_headers, retry_delay_for
from .rate_limit import RateLimiter, RateLimitState, origin_of

__all__ = [
    "FeedFetcher",
    "FetchResult",
    "build_headers",
    "retry_delay_for",
    "RateLimiter",
    "RateLimitState",
    "origin_of",
]
