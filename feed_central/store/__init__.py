"""
Article storage.

The persistent store is external; this package declares the interface the
listing code consumes and an in-memory implementation of it.
"""

from .base import NEWEST_FIRST, ArticleQuery, ArticleStore, SortSpec
from .memory import InMemoryArticleStore, load_articles_json

__all__ = [
    "NEWEST_FIRST",
    "ArticleQuery",
    "ArticleStore",
    "SortSpec",
    "InMemoryArticleStore",
    "load_articles_json",
]
