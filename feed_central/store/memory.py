"""
In-memory article store.

Reference implementation of ArticleStore used by the CLI (loading a JSON
export) and by tests.
"""

from __future__ import annotations

import json
from pathlib import Path
import random
from typing import Any, Iterable

from ..core.types import Article
from .base import ArticleQuery, ArticleStore, SortSpec


class InMemoryArticleStore(ArticleStore):
    def __init__(self, articles: Iterable[Article] = (), rng: random.Random | None = None):
        self._articles: list[Article] = list(articles)
        self._rng = rng or random.Random()

    def add(self, *articles: Article) -> None:
        self._articles.extend(articles)

    def __len__(self) -> int:
        return len(self._articles)

    async def find(
        self,
        query: ArticleQuery,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Article]:
        matches = [article for article in self._articles if query.matches(article)]
        # Stable sorts applied from the least to the most significant key.
        for field, direction in reversed(sort or []):
            matches.sort(key=lambda a, f=field: _sort_key(a, f), reverse=direction < 0)
        skip = max(0, skip)
        if limit is None:
            return matches[skip:]
        return matches[skip : skip + max(0, limit)]

    async def count_documents(self, query: ArticleQuery) -> int:
        return sum(1 for article in self._articles if query.matches(article))

    async def distinct(self, field: str, query: ArticleQuery) -> set[str]:
        values = set()
        for article in self._articles:
            if not query.matches(article):
                continue
            value = getattr(article, field, None)
            if value:
                values.add(value)
        return values

    async def sample(self, query: ArticleQuery, size: int) -> list[Article]:
        matches = [article for article in self._articles if query.matches(article)]
        return self._rng.sample(matches, min(max(0, size), len(matches)))

    async def get(self, article_id: str) -> Article | None:
        for article in self._articles:
            if article.id == article_id:
                return article
        return None


def _sort_key(article: Article, field: str) -> tuple[bool, Any]:
    value = getattr(article, field, None)
    # Missing values sort after present ones in descending order.
    return (value is not None, value)


def load_articles_json(path: Path) -> InMemoryArticleStore:
    """Load a JSON export (a list, or an object with an "articles" list)."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("articles", [])
    return InMemoryArticleStore(Article.from_dict(item) for item in data)
