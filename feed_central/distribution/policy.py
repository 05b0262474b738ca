"""
Selection policy for balanced listings.

Pure helpers used by DistributionEngine:
- select_source_window: rotate a fixed-size source subset across pages
- ensure_region_coverage: keep every represented region in a world page
- per_source_quota: how many articles one source may contribute
- stride_interleave / merge_balanced: round-robin merge, then recency order
- replay_pages: page through merged sources without losing truncated items
"""

from __future__ import annotations

from collections import Counter
import math
from typing import Callable, Mapping, Sequence

from ..config import DistributionConfig
from ..core.types import Article


def eligibility_window_days(category: str | None, cfg: DistributionConfig) -> int:
    if category and category in cfg.category_window_days:
        return cfg.category_window_days[category]
    return cfg.window_days


def quota_caps(category: str | None, cfg: DistributionConfig) -> tuple[int, int]:
    if category and category in cfg.category_quotas:
        return tuple(cfg.category_quotas[category])
    return tuple(cfg.default_quota)


def select_source_window(
    sources: Sequence[str], page: int, budget: int, overlap: float
) -> list[str]:
    """Pick the sources shown on a page.

    When there are more sources than the budget, a window of `budget`
    sources slides forward by `budget * (1 - overlap)` per page, wrapping
    around, so consecutive pages share roughly `overlap` of their sources.
    """
    n = len(sources)
    if budget <= 0:
        return []
    if n <= budget:
        return list(sources)
    step = max(1, round(budget * (1 - overlap)))
    start = ((max(1, page) - 1) * step) % n
    return [sources[(start + offset) % n] for offset in range(budget)]


def ensure_region_coverage(
    selected: Sequence[str],
    eligible: Sequence[str],
    budget: int,
    region_of: Callable[[str], str | None],
) -> list[str]:
    """Make sure every region present among eligible sources is selected.

    A missing region is added while there is room in the budget; otherwise
    it replaces a source without a region or one from the most represented
    region, which always keeps at least one source.
    """
    chosen = list(selected)
    regions: list[str] = []
    for source in eligible:
        region = region_of(source)
        if region and region not in regions:
            regions.append(region)

    for region in regions:
        if any(region_of(source) == region for source in chosen):
            continue
        candidate = next(
            source for source in eligible if region_of(source) == region and source not in chosen
        )
        if len(chosen) < budget:
            chosen.append(candidate)
            continue
        counts = Counter(region_of(source) for source in chosen)
        evictable = [
            source
            for source in reversed(chosen)
            if region_of(source) is None or counts[region_of(source)] > 1
        ]
        if not evictable:
            break
        victim = min(
            evictable,
            key=lambda source: (region_of(source) is not None, -counts[region_of(source)]),
        )
        chosen[chosen.index(victim)] = candidate
    return chosen


def per_source_quota(
    source_count: int,
    limit: int,
    caps: tuple[int, int],
    eligible_count: int | None = None,
) -> int:
    """Articles drawn per source.

    Starts at an even share of the page, raised to the category minimum
    (by at most one article) and lowered to the category maximum. The
    result never exceeds ceil(limit / source_count) + 1, the page limit,
    or ceil(limit / eligible_count) + 1 when more sources are eligible than
    fit on one page.
    """
    if source_count <= 0 or limit <= 0:
        return 0
    low, high = caps
    base = math.ceil(limit / source_count)
    quota = min(max(base, low), base + 1, high, limit)
    if eligible_count and eligible_count > source_count:
        quota = min(quota, math.ceil(limit / eligible_count) + 1)
    return max(1, quota)


def stride_interleave(groups: Sequence[Sequence[Article]]) -> list[Article]:
    """Place item i of group j at position i * len(groups) + j."""
    width = len(groups)
    depth = max((len(group) for group in groups), default=0)
    slots: list[Article | None] = [None] * (width * depth)
    for j, group in enumerate(groups):
        for i, article in enumerate(group):
            slots[i * width + j] = article
    return [article for article in slots if article is not None]


def merge_balanced(groups: Sequence[Sequence[Article]], limit: int) -> list[Article]:
    """Interleave groups, order by publication time (newest first), truncate."""
    interleaved = [article for article in stride_interleave(groups) if article.pub_date is not None]
    interleaved.sort(key=lambda article: article.pub_date, reverse=True)
    return interleaved[:limit]


def _identity(article: Article) -> str:
    return article.id or article.guid or article.link


def replay_pages(
    chunks: Mapping[str, Sequence[Sequence[Article]]],
    schedule: Sequence[tuple[Sequence[str], int]],
    limit: int,
) -> list[Article]:
    """Rebuild pages 1..len(schedule) in order and return the last one.

    chunks[label][q] is what becomes visible for a label on page q + 1, and
    schedule[q] is (labels selected for that page, per-label quota). Each
    selected label offers its first `quota` visible articles not shown on an
    earlier page, so an article cut by truncation stays on offer and a label
    rotating back into the window resumes where it left off.
    """
    shown: set[str] = set()
    visible: dict[str, list[Article]] = {label: [] for label in chunks}
    page: list[Article] = []
    for step, (selected, quota) in enumerate(schedule):
        for label, label_chunks in chunks.items():
            if step < len(label_chunks):
                visible[label].extend(label_chunks[step])
        groups = [
            [article for article in visible.get(label, []) if _identity(article) not in shown][:quota]
            for label in selected
        ]
        page = merge_balanced(groups, limit)
        shown.update(_identity(article) for article in page)
    return page
