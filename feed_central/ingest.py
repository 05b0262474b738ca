"""
Feed ingestion driver.

Fetches every configured feed concurrently through a FeedFetcher. A feed
whose attempts are exhausted is recorded as a failed FetchResult; it never
stops the remaining feeds. Parsing and persisting the fetched payloads is
left to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import FetchExhausted
from .fetch.fetcher import FeedFetcher, FetchResult
from .logging_utils import get_logger, log_event


@dataclass(frozen=True)
class FeedSource:
    """One feed to ingest.

    Attributes:
        source: Source identifier stored on the resulting articles
        url: Feed location
        category: Category the feed's articles are filed under
        download_first: Stage the payload in a temporary file before decoding
    """

    source: str
    url: str
    category: str | None = None
    download_first: bool = False


@dataclass
class IngestStats:
    """Counters collected while fetching feeds."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0


def load_feed_sources(path: Path) -> list[FeedSource]:
    """Load feeds from YAML.

    Expected layout::

        sources:
          bbc:
            download_first: false
            feeds:
              world: https://feeds.bbci.co.uk/news/world/rss.xml
    """
    with open(path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}

    feeds: list[FeedSource] = []
    for source, entry in (raw.get("sources") or {}).items():
        entry = entry or {}
        download_first = bool(entry.get("download_first", False))
        for category, url in (entry.get("feeds") or {}).items():
            feeds.append(
                FeedSource(source=source, url=url, category=category, download_first=download_first)
            )
    return feeds


async def ingest_feeds(
    feeds: list[FeedSource],
    fetcher: FeedFetcher,
    concurrency: int = 4,
    logger: logging.Logger | None = None,
) -> tuple[list[tuple[FeedSource, FetchResult]], IngestStats]:
    """Fetch all feeds with at most `concurrency` in flight.

    Returns:
        Tuple of ((feed, result) pairs in input order, statistics)
    """
    logger = logger or get_logger("ingest")
    stats = IngestStats(total=len(feeds))
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _fetch_single(feed: FeedSource) -> FetchResult:
        async with semaphore:
            try:
                result = await fetcher.fetch(feed.url, download_first=feed.download_first)
            except FetchExhausted as exc:
                stats.failed += 1
                log_event(
                    logger,
                    "Feed fetch failed",
                    level=logging.WARNING,
                    event="feed_failed",
                    source=feed.source,
                    category=feed.category,
                    location=feed.url,
                    attempts=exc.attempts,
                    error=str(exc),
                )
                return FetchResult(
                    url=feed.url,
                    status_code=exc.status_code,
                    text=None,
                    error=str(exc),
                    attempts=exc.attempts,
                )
            stats.succeeded += 1
            log_event(
                logger,
                "Feed fetched",
                event="feed_fetched",
                source=feed.source,
                category=feed.category,
                location=feed.url,
                attempts=result.attempts,
            )
            return result

    results = await asyncio.gather(*[_fetch_single(feed) for feed in feeds])
    return list(zip(feeds, results)), stats
