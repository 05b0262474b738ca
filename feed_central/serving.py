"""
Listing service.

Turns a listing request ({category, source, page, limit, sort}) into a
ListingPage ({page, limit, total, totalPages, articles}). Only the "newest"
sort is source-balanced; "popular" is a plain ordered slice and the random
sorts draw from a memoized pool instead of the whole corpus.
"""

from __future__ import annotations

import logging
import random
from typing import Any

from .cache import EphemeralCache
from .config import DistributionConfig
from .core.sources import SOURCE_CATALOG, SourceInfo, sources_for_category
from .core.types import Article, ListingPage
from .distribution.engine import DistributionEngine, cache_key, clamp_limit, clamp_page
from .errors import ArticleNotFound, InvalidSortMode
from .logging_utils import get_logger, log_event
from .store.base import NEWEST_FIRST, ArticleQuery, ArticleStore


SORT_MODES = ("newest", "popular", "random", "semiRandom")
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
POPULAR_FIRST = [("popularity", -1), ("pub_date", -1)]


def parse_int(value: Any, default: int) -> int:
    """Coerce a query parameter to int, falling back to default."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ListingService:
    """Serves paginated article listings.

    Args:
        store: Article store to query
        cfg: Distribution settings (also sizes the random-sort pools)
        cache: Cache shared with the distribution engine
        engine: Distribution engine (built over the same store and cache if omitted)
        catalog: Source catalog for source listings
        rng: Random generator for the random sorts
    """

    def __init__(
        self,
        store: ArticleStore,
        cfg: DistributionConfig | None = None,
        cache: EphemeralCache | None = None,
        engine: DistributionEngine | None = None,
        catalog: dict[str, SourceInfo] | None = None,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.cfg = cfg or DistributionConfig()
        self.cache = cache if cache is not None else EphemeralCache()
        self.catalog = SOURCE_CATALOG if catalog is None else catalog
        self.engine = engine or DistributionEngine(
            store, self.cfg, cache=self.cache, catalog=self.catalog
        )
        self._rng = rng or random.Random()
        self._logger = logger or get_logger("serving")

    async def list_articles(
        self,
        category: str | None = None,
        source: str | None = None,
        page: Any = DEFAULT_PAGE,
        limit: Any = DEFAULT_LIMIT,
        sort: str = "newest",
    ) -> ListingPage:
        """Return one page of articles.

        Raises:
            InvalidSortMode: if sort is not one of SORT_MODES (no store query is made)
        """
        if sort not in SORT_MODES:
            raise InvalidSortMode(sort, SORT_MODES)
        page = clamp_page(parse_int(page, DEFAULT_PAGE))
        limit = clamp_limit(parse_int(limit, DEFAULT_LIMIT))
        category = category or None
        source = source or None
        query = ArticleQuery(source=source, category=category)

        total = await self.store.count_documents(query)
        if total == 0:
            return ListingPage(page=page, limit=limit, total=0, articles=[])

        if sort == "newest":
            articles = await self.engine.select_balanced(
                category=category, source=source, page=page, limit=limit
            )
        elif sort == "popular":
            articles = await self._popular(query, page, limit)
        elif sort == "random":
            pool = await self._sample_pool(query)
            articles = self._rng.sample(pool, min(limit, len(pool)))
        else:
            pool = await self._recent_pool(query)
            articles = pool[(page - 1) * limit : page * limit]

        log_event(
            self._logger,
            "Listing served",
            level=logging.DEBUG,
            event="listing_served",
            sort=sort,
            category=category,
            source=source,
            page=page,
            limit=limit,
            total=total,
            returned=len(articles),
        )
        return ListingPage(page=page, limit=limit, total=total, articles=list(articles))

    async def get_article(self, article_id: str) -> Article:
        article = await self.store.get(article_id)
        if article is None:
            raise ArticleNotFound(article_id)
        return article

    def list_sources(self, category: str | None = None) -> list[str]:
        return sources_for_category(category, self.catalog)

    async def _popular(self, query: ArticleQuery, page: int, limit: int) -> list[Article]:
        key = cache_key("popular", query.source, query.category, page, limit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        articles = await self.store.find(query, POPULAR_FIRST, skip=(page - 1) * limit, limit=limit)
        self.cache.set(key, articles)
        return articles

    async def _sample_pool(self, query: ArticleQuery) -> list[Article]:
        key = f"sample:{query.source or '*'}:{query.category or '*'}"
        pool = self.cache.get(key)
        if pool is None:
            pool = await self.store.sample(query, self.cfg.sample_pool_size)
            self.cache.set(key, pool)
        return pool

    async def _recent_pool(self, query: ArticleQuery) -> list[Article]:
        key = f"recent-shuffled:{query.source or '*'}:{query.category or '*'}"
        pool = self.cache.get(key)
        if pool is None:
            pool = await self.store.find(query, NEWEST_FIRST, limit=self.cfg.sample_pool_size)
            self._rng.shuffle(pool)
            self.cache.set(key, pool)
        return pool
