"""
Core data types for feed_central.

This module defines the read-model values shared by the store, the
distribution engine and the serving layer:
- Article: One stored feed item
- ListingPage: One page of a listing response
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Article:
    """A feed item as persisted by the ingestion pipeline.

    Articles are never mutated after they leave the store.

    Attributes:
        id: Store identifier
        title: The article headline
        description: Short summary from the feed
        link: The full URL to the original article
        guid: Globally unique identifier from the feed
        pub_date: Publication timestamp (timezone-aware), if the feed had one
        image: Optional image URL
        category: Feed category the article was ingested under
        source: Source identifier (e.g., "bbc")
        created_at: When the article was stored
        popularity: Engagement score used by the "popular" sort
    """

    id: str
    title: str = ""
    description: str = ""
    link: str = ""
    guid: str = ""
    pub_date: datetime | None = None
    image: str | None = None
    category: str | None = None
    source: str | None = None
    created_at: datetime | None = None
    popularity: int = 0

    @property
    def is_balanceable(self) -> bool:
        """Whether the article can take part in source-balanced selection."""
        return bool(self.source) and self.pub_date is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "guid": self.guid,
            "pubDate": _isoformat(self.pub_date),
            "image": self.image,
            "category": self.category,
            "source": self.source,
            "createdAt": _isoformat(self.created_at),
            "popularity": self.popularity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        article_id = data.get("id") or data.get("_id") or data.get("guid") or data.get("link")
        return cls(
            id=str(article_id or ""),
            title=data.get("title") or "",
            description=data.get("description") or "",
            link=data.get("link") or "",
            guid=data.get("guid") or "",
            pub_date=parse_timestamp(data.get("pubDate") or data.get("pub_date")),
            image=data.get("image"),
            category=data.get("category"),
            source=data.get("source"),
            created_at=parse_timestamp(data.get("createdAt") or data.get("created_at")),
            popularity=int(data.get("popularity") or 0),
        )


@dataclass
class ListingPage:
    """One page of a listing response."""

    page: int
    limit: int
    total: int
    articles: list[Article] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 0
        return -(-self.total // self.limit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "articles": [article.to_dict() for article in self.articles],
        }


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")
