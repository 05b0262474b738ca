"""
Abstract article store interface.

The persistent document store is an external collaborator. Listings only
need the read operations declared here; filters are conjunctions over
source, category and a publication-date range.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime

from ..core.types import Article


# (field, direction) pairs; direction is 1 for ascending, -1 for descending.
SortSpec = list[tuple[str, int]]

NEWEST_FIRST: SortSpec = [("pub_date", -1)]


@dataclass(frozen=True)
class ArticleQuery:
    """Conjunctive article filter.

    Attributes:
        source: Exact source identifier
        category: Exact category
        since: Inclusive lower bound on pub_date
        until: Exclusive upper bound on pub_date
    """

    source: str | None = None
    category: str | None = None
    since: datetime | None = None
    until: datetime | None = None

    def with_source(self, source: str | None) -> "ArticleQuery":
        return replace(self, source=source)

    def matches(self, article: Article) -> bool:
        if self.source is not None and article.source != self.source:
            return False
        if self.category is not None and article.category != self.category:
            return False
        if self.since is not None or self.until is not None:
            if article.pub_date is None:
                return False
            if self.since is not None and article.pub_date < self.since:
                return False
            if self.until is not None and article.pub_date >= self.until:
                return False
        return True


class ArticleStore(ABC):
    """Read interface over the persistent article collection."""

    @abstractmethod
    async def find(
        self,
        query: ArticleQuery,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Article]:
        """Return matching articles in sort order, after skipping `skip` of them."""
        raise NotImplementedError

    @abstractmethod
    async def count_documents(self, query: ArticleQuery) -> int:
        raise NotImplementedError

    @abstractmethod
    async def distinct(self, field: str, query: ArticleQuery) -> set[str]:
        """Return the distinct non-empty values of `field` among matching articles."""
        raise NotImplementedError

    @abstractmethod
    async def sample(self, query: ArticleQuery, size: int) -> list[Article]:
        """Return up to `size` matching articles chosen at random."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, article_id: str) -> Article | None:
        raise NotImplementedError
