"""
Balanced multi-source distribution.

DistributionEngine turns a recency-sorted, source-skewed corpus into a page
where every contributing source is represented:
1. Find sources with articles inside the category's eligibility window
2. Choose a (page-rotated) window of sources, with region coverage for "world"
3. Fetch each source's newest articles concurrently, deep enough for every page
   up to the requested one
4. Replay earlier pages so each source offers its next unshown articles, up
   to a per-source quota, then stride-interleave, re-sort by recency, truncate

A failed per-source sub-query is logged and that source is left out of the
page. Computed pages are memoized in an EphemeralCache.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from ..cache import EphemeralCache
from ..config import DistributionConfig
from ..core.sources import SOURCE_CATALOG, WORLD, SourceInfo, region_of
from ..core.types import Article
from ..errors import SourceSubqueryFailed
from ..logging_utils import get_logger, log_event
from ..store.base import NEWEST_FIRST, ArticleQuery, ArticleStore
from .policy import (
    eligibility_window_days,
    ensure_region_coverage,
    per_source_quota,
    quota_caps,
    replay_pages,
    select_source_window,
)


T = TypeVar("T")

MAX_LIMIT = 100


def clamp_page(page: int) -> int:
    return max(1, page)


def clamp_limit(limit: int) -> int:
    return min(max(1, limit), MAX_LIMIT)


def cache_key(
    sort: str, source: str | None, category: str | None, page: int, limit: int
) -> str:
    return f"{sort}:{source or '*'}:{category or '*'}:{page}:{limit}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DistributionEngine:
    """Builds fair, recency-ordered pages over an ArticleStore.

    Args:
        store: Article store to query
        cfg: Windows, budgets and quota caps
        cache: Memoization cache (a private one is created if omitted)
        catalog: Source catalog used for world region lookups
        now: Clock returning an aware datetime
        logger: Logger for sub-query failures and cache events
    """

    def __init__(
        self,
        store: ArticleStore,
        cfg: DistributionConfig | None = None,
        cache: EphemeralCache | None = None,
        catalog: dict[str, SourceInfo] | None = None,
        now: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.cfg = cfg or DistributionConfig()
        self.cache = cache if cache is not None else EphemeralCache()
        self.catalog = SOURCE_CATALOG if catalog is None else catalog
        self._now = now
        self._logger = logger or get_logger("distribution")

    def region_of(self, source: str) -> str | None:
        return region_of(source, self.catalog)

    async def select_balanced(
        self,
        category: str | None = None,
        source: str | None = None,
        page: int = 1,
        limit: int = 25,
    ) -> list[Article]:
        """Return one page of articles balanced across sources.

        With an explicit source there is nothing to balance and the page is a
        plain newest-first slice for that source.
        """
        page = clamp_page(page)
        limit = clamp_limit(limit)
        key = cache_key("newest", source, category, page, limit)
        cached = self.cache.get(key)
        if cached is not None:
            log_event(
                self._logger,
                "Listing cache hit",
                level=logging.DEBUG,
                event="listing_cache_hit",
                key=key,
            )
            return cached

        if source:
            articles = await self.store.find(
                ArticleQuery(source=source, category=category),
                NEWEST_FIRST,
                skip=(page - 1) * limit,
                limit=limit,
            )
        else:
            articles = await self._balance_sources(category, page, limit)

        self.cache.set(key, articles)
        return articles

    async def select_balanced_by_category(self, page: int = 1, limit: int = 25) -> list[Article]:
        """Return one unfiltered page balanced across categories.

        Each category's share is itself a source-balanced page, so the result
        is fair across categories first and across sources within each one.
        """
        page = clamp_page(page)
        limit = clamp_limit(limit)
        key = cache_key("newest", None, "@by-category", page, limit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        widest = max([self.cfg.window_days, *self.cfg.category_window_days.values()])
        since = self._now() - timedelta(days=widest)
        categories = sorted(await self.store.distinct("category", ArticleQuery(since=since)))
        if not categories:
            return []

        budget = self.cfg.sources_per_page
        caps = tuple(self.cfg.default_quota)
        schedule = []
        for step in range(1, page + 1):
            selected = select_source_window(categories, step, budget, self.cfg.window_overlap)
            schedule.append(
                (selected, per_source_quota(len(selected), limit, caps, len(categories)))
            )
        # A category's q-th chunk is its own balanced page q at the category quota.
        quota = schedule[0][1]
        pages = await self._gather_isolated(
            categories,
            [self._category_pages(name, page, quota) for name in categories],
        )
        articles = replay_pages(pages, schedule, limit)
        self.cache.set(key, articles)
        return articles

    async def eligible_sources(self, category: str | None) -> list[str]:
        since = self._now() - timedelta(days=eligibility_window_days(category, self.cfg))
        sources = await self.store.distinct("source", ArticleQuery(category=category, since=since))
        return sorted(source for source in sources if source)

    def select_sources(self, eligible: Sequence[str], category: str | None, page: int) -> list[str]:
        budget = self.cfg.sources_per_page
        selected = select_source_window(eligible, page, budget, self.cfg.window_overlap)
        if category == WORLD:
            selected = ensure_region_coverage(selected, eligible, budget, self.region_of)
        return selected

    async def _category_pages(self, category: str, pages: int, limit: int) -> list[list[Article]]:
        return list(
            await asyncio.gather(
                *[
                    self.select_balanced(category=category, page=step, limit=limit)
                    for step in range(1, pages + 1)
                ]
            )
        )

    async def _balance_sources(self, category: str | None, page: int, limit: int) -> list[Article]:
        window = eligibility_window_days(category, self.cfg)
        query = ArticleQuery(category=category, since=self._now() - timedelta(days=window))

        eligible = await self.eligible_sources(category)
        if not eligible:
            return []
        caps = quota_caps(category, self.cfg)
        schedule = []
        for step in range(1, page + 1):
            selected = self.select_sources(eligible, category, step)
            schedule.append((selected, per_source_quota(len(selected), limit, caps, len(eligible))))
        depth = sum(quota for _selected, quota in schedule)
        log_event(
            self._logger,
            "Balancing sources",
            level=logging.DEBUG,
            event="balance_sources",
            category=category,
            page=page,
            eligible=len(eligible),
            selected=schedule[-1][0],
            quota=schedule[-1][1],
            depth=depth,
            window_days=window,
        )

        newest = await self._gather_isolated(
            eligible,
            [
                self.store.find(query.with_source(source), NEWEST_FIRST, limit=depth)
                for source in eligible
            ],
        )
        chunks = {
            source: _split(articles, [quota for _selected, quota in schedule])
            for source, articles in newest.items()
        }
        return replay_pages(chunks, schedule, limit)

    async def _gather_isolated(
        self, labels: Sequence[str], calls: Sequence[Awaitable[T]]
    ) -> dict[str, T]:
        """Await all calls concurrently; drop (and log) the ones that fail."""
        results = await asyncio.gather(*calls, return_exceptions=True)
        succeeded: dict[str, T] = {}
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failure = SourceSubqueryFailed(label, result)
                log_event(
                    self._logger,
                    str(failure),
                    level=logging.WARNING,
                    event="subquery_failed",
                    source=label,
                    error=f"{type(result).__name__}: {result}",
                )
                continue
            succeeded[label] = result
        return succeeded


def _split(articles: Sequence[Article], sizes: Sequence[int]) -> list[list[Article]]:
    """Cut a newest-first list into consecutive chunks of the given sizes."""
    balanceable = [article for article in articles if article.is_balanceable]
    chunks = []
    start = 0
    for size in sizes:
        chunks.append(balanceable[start : start + size])
        start += size
    return chunks
