"""
Static source catalog.

Maps each feed source identifier to the categories it publishes and, for
"world" coverage, the geographic region it reports from. Sources are not
stored entities; listings infer them from Article.source values.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import UnknownCategory


@dataclass(frozen=True)
class SourceInfo:
    name: str
    categories: tuple[str, ...]
    region: str | None = None


WORLD = "world"


def _catalog(*entries: SourceInfo) -> dict[str, SourceInfo]:
    return {entry.name: entry for entry in entries}


SOURCE_CATALOG: dict[str, SourceInfo] = _catalog(
    SourceInfo("bbc", ("world", "business", "tech", "science", "health"), "europe"),
    SourceInfo("guardian", ("world", "politics", "culture", "sports"), "europe"),
    SourceInfo("dw", ("world", "business"), "europe"),
    SourceInfo("france24", ("world",), "europe"),
    SourceInfo("cnn", ("world", "politics", "business", "health"), "americas"),
    SourceInfo("npr", ("world", "politics", "science", "culture"), "americas"),
    SourceInfo("thestar", ("world", "business", "sports"), "americas"),
    SourceInfo("globalnews", ("world", "politics"), "americas"),
    SourceInfo("scmp", ("world", "business", "tech"), "asia"),
    SourceInfo("japantimes", ("world", "culture"), "asia"),
    SourceInfo("thehindu", ("world", "sports", "science"), "asia"),
    SourceInfo("straitstimes", ("world", "business"), "asia"),
    SourceInfo("allafrica", ("world",), "africa"),
    SourceInfo("mailguardian", ("world", "politics"), "africa"),
    SourceInfo("aljazeera", ("world", "politics", "sports"), "middle_east"),
    SourceInfo("timesofisrael", ("world",), "middle_east"),
    SourceInfo("techcrunch", ("tech", "business")),
    SourceInfo("theverge", ("tech", "science", "culture")),
    SourceInfo("arstechnica", ("tech", "science")),
    SourceInfo("wired", ("tech", "science", "culture")),
    SourceInfo("espn", ("sports",)),
    SourceInfo("statnews", ("health", "science")),
)


def sources_for_category(
    category: str | None = None,
    catalog: dict[str, SourceInfo] | None = None,
) -> list[str]:
    """List source identifiers, optionally restricted to one category.

    Raises:
        UnknownCategory: if a category is given and no source publishes it
    """
    catalog = SOURCE_CATALOG if catalog is None else catalog
    if not category:
        return sorted(catalog)
    names = sorted(name for name, info in catalog.items() if category in info.categories)
    if not names:
        raise UnknownCategory(category)
    return names


def region_of(source: str, catalog: dict[str, SourceInfo] | None = None) -> str | None:
    catalog = SOURCE_CATALOG if catalog is None else catalog
    info = catalog.get(source)
    return info.region if info else None
