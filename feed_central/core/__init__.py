"""
Core domain models.

This package contains data types and static lookup tables that are
independent of fetching, storage and listing.
"""

from .types import Article, ListingPage, parse_timestamp
from .sources import SOURCE_CATALOG, SourceInfo, region_of, sources_for_category

__all__ = [
    "Article",
    "ListingPage",
    "parse_timestamp",
    "SOURCE_CATALOG",
    "SourceInfo",
    "region_of",
    "sources_for_category",
]
