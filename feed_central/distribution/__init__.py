"""
Balanced listing distribution.

This package selects fair, recency-ordered pages across many sources.
"""

from .engine import DistributionEngine, cache_key, clamp_limit, clamp_page
from .policy import (
    ensure_region_coverage,
    merge_balanced,
    per_source_quota,
    select_source_window,
    stride_interleave,
)

__all__ = [
    "DistributionEngine",
    "cache_key",
    "clamp_limit",
    "clamp_page",
    "ensure_region_coverage",
    "merge_balanced",
    "per_source_quota",
    "select_source_window",
    "stride_interleave",
]
