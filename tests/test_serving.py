"""Tests for the listing service."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import random

import pytest

from feed_central.cache import EphemeralCache
from feed_central.config import DistributionConfig
from feed_central.core.sources import SourceInfo
from feed_central.core.types import Article
from feed_central.distribution.engine import DistributionEngine
from feed_central.errors import ArticleNotFound, InvalidSortMode, UnknownCategory
from feed_central.serving import ListingService, parse_int
from feed_central.store.memory import InMemoryArticleStore


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class RecordingStore(InMemoryArticleStore):
    def __init__(self, articles=(), rng=None):
        super().__init__(articles, rng)
        self.calls: list[str] = []

    async def find(self, query, sort=None, skip=0, limit=None):
        self.calls.append("find")
        return await super().find(query, sort, skip, limit)

    async def count_documents(self, query):
        self.calls.append("count_documents")
        return await super().count_documents(query)

    async def distinct(self, field, query):
        self.calls.append("distinct")
        return await super().distinct(field, query)

    async def sample(self, query, size):
        self.calls.append("sample")
        return await super().sample(query, size)


def make_articles(source: str, category: str, count: int, popularity=None):
    return [
        Article(
            id=f"{source}-{i}",
            title=f"{source} story {i}",
            link=f"https://{source}.example.com/{i}",
            source=source,
            category=category,
            pub_date=NOW - timedelta(hours=i),
            popularity=popularity[i] if popularity else 0,
        )
        for i in range(count)
    ]


def make_service(store, cfg: DistributionConfig | None = None, seed: int = 7) -> ListingService:
    cfg = cfg or DistributionConfig()
    cache = EphemeralCache()
    engine = DistributionEngine(store, cfg, cache=cache, catalog={}, now=lambda: NOW)
    return ListingService(store, cfg, cache=cache, engine=engine, rng=random.Random(seed))


def test_invalid_sort_is_rejected_before_any_query():
    store = RecordingStore(make_articles("a", "tech", 3))
    service = make_service(store)

    with pytest.raises(InvalidSortMode) as excinfo:
        asyncio.run(service.list_articles(sort="bogus"))

    assert excinfo.value.sort == "bogus"
    assert store.calls == []


def test_page_and_limit_are_clamped():
    store = InMemoryArticleStore(make_articles("a", "tech", 3))
    service = make_service(store)

    result = asyncio.run(service.list_articles(page=0, limit=500))

    assert result.page == 1
    assert result.limit == 100


def test_non_numeric_page_and_limit_fall_back_to_defaults():
    store = InMemoryArticleStore(make_articles("a", "tech", 3))
    service = make_service(store)

    result = asyncio.run(service.list_articles(page="abc", limit=""))

    assert result.page == 1
    assert result.limit == 25
    assert parse_int("12", 1) == 12
    assert parse_int(None, 5) == 5


def test_empty_corpus_returns_empty_page():
    store = RecordingStore()
    service = make_service(store)

    result = asyncio.run(service.list_articles(category="tech"))

    assert result.total == 0
    assert result.total_pages == 0
    assert result.articles == []
    assert store.calls == ["count_documents"]


def test_newest_page_is_balanced_across_sources():
    store = InMemoryArticleStore(
        make_articles("busy", "tech", 20) + make_articles("quiet", "tech", 2)
    )
    service = make_service(store)

    result = asyncio.run(service.list_articles(category="tech", limit=4))

    assert result.total == 22
    assert result.total_pages == 6
    assert {article.source for article in result.articles} == {"busy", "quiet"}


def test_popular_orders_by_popularity_then_recency():
    store = InMemoryArticleStore(make_articles("a", "tech", 4, popularity=[1, 9, 9, 3]))
    service = make_service(store)

    result = asyncio.run(service.list_articles(sort="popular", limit=3))

    assert [article.id for article in result.articles] == ["a-1", "a-2", "a-3"]


def test_random_sort_draws_from_a_memoized_pool():
    store = RecordingStore(make_articles("a", "tech", 10))
    service = make_service(store)

    first = asyncio.run(service.list_articles(sort="random", limit=5))
    store.add(*make_articles("late", "tech", 10))
    second = asyncio.run(service.list_articles(sort="random", limit=5))

    assert len(first.articles) == 5
    assert store.calls.count("sample") == 1
    assert all(article.source == "a" for article in second.articles)


def test_semi_random_pages_slice_one_shuffled_pool():
    store = InMemoryArticleStore(make_articles("a", "tech", 10))
    service = make_service(store)

    first = asyncio.run(service.list_articles(sort="semiRandom", page=1, limit=5))
    second = asyncio.run(service.list_articles(sort="semiRandom", page=2, limit=5))
    again = asyncio.run(service.list_articles(sort="semiRandom", page=1, limit=5))

    first_ids = {article.id for article in first.articles}
    second_ids = {article.id for article in second.articles}
    assert len(first_ids) == 5
    assert first_ids.isdisjoint(second_ids)
    assert first_ids | second_ids == {f"a-{i}" for i in range(10)}
    assert [a.id for a in again.articles] == [a.id for a in first.articles]


def test_semi_random_pool_is_limited_to_recent_articles():
    store = InMemoryArticleStore(make_articles("a", "tech", 10))
    service = make_service(store, DistributionConfig(sample_pool_size=4))

    result = asyncio.run(service.list_articles(sort="semiRandom", limit=10))

    assert {article.id for article in result.articles} == {"a-0", "a-1", "a-2", "a-3"}


def test_listing_page_serializes_with_camel_case_keys():
    store = InMemoryArticleStore(make_articles("a", "tech", 1))
    service = make_service(store)

    payload = asyncio.run(service.list_articles(category="tech")).to_dict()

    assert set(payload) == {"page", "limit", "total", "totalPages", "articles"}
    article = payload["articles"][0]
    assert article["pubDate"] == "2026-10-19T12:00:00Z"
    assert article["source"] == "a"


def test_get_article():
    store = InMemoryArticleStore(make_articles("a", "tech", 2))
    service = make_service(store)

    assert asyncio.run(service.get_article("a-1")).title == "a story 1"
    with pytest.raises(ArticleNotFound):
        asyncio.run(service.get_article("missing"))


def test_list_sources_by_category():
    store = InMemoryArticleStore()
    catalog = {
        "one": SourceInfo("one", ("tech",)),
        "two": SourceInfo("two", ("tech", "science")),
    }
    service = ListingService(store, catalog=catalog)

    assert service.list_sources() == ["one", "two"]
    assert service.list_sources("science") == ["two"]
    with pytest.raises(UnknownCategory):
        service.list_sources("gardening")
