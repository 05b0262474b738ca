"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- FetchConfig: HTTP fetching and per-origin rate limiting
- DistributionConfig: Balanced listing windows, budgets and quotas
- CacheConfig: In-memory memoization settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml


@dataclass
class RateLimitProfile:
    """Politeness settings for one origin.

    Attributes:
        delay: Minimum seconds between two request starts to the same origin
        max_retries: Total number of attempts before giving up
        retry_delay: Base seconds to wait before the next attempt
    """

    delay: float = 2.0
    max_retries: int = 3
    retry_delay: float = 2.0


def _default_rate_limits() -> dict[str, RateLimitProfile]:
    return {
        "www.thestar.com": RateLimitProfile(delay=5.0, max_retries=5, retry_delay=5.0),
    }


@dataclass
class FetchConfig:
    """Configuration for feed fetching.

    Attributes:
        timeout_seconds: Hard wall-clock timeout for one attempt
        max_redirects: Redirect hops followed before failing
        trust_env: Whether to respect system proxy settings
        user_agent: HTTP User-Agent header string
        download_dir: Staging directory for download-first fetches (system temp if None)
        concurrency: Number of feeds fetched at once during ingestion
        default_rate_limit: Profile used for origins without an override
        rate_limits: Per-host (or per-origin) profile overrides
    """

    timeout_seconds: float = 60.0
    max_redirects: int = 5
    trust_env: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    download_dir: str | None = None
    concurrency: int = 4
    default_rate_limit: RateLimitProfile = field(default_factory=RateLimitProfile)
    rate_limits: dict[str, RateLimitProfile] = field(default_factory=_default_rate_limits)


@dataclass
class DistributionConfig:
    """Configuration for balanced multi-source listings.

    Attributes:
        window_days: Default eligibility window in days
        category_window_days: Per-category eligibility windows
        sources_per_page: Maximum number of sources drawn into one page
        window_overlap: Fraction of sources shared by consecutive pages
        default_quota: (min, max) per-source article caps
        category_quotas: Per-category (min, max) caps
        sample_pool_size: Size of the memoized pool for random sorts
    """

    window_days: int = 3
    category_window_days: dict[str, int] = field(
        default_factory=lambda: {"science": 7, "health": 7, "culture": 7, "world": 2}
    )
    sources_per_page: int = 12
    window_overlap: float = 0.25
    default_quota: tuple[int, int] = (2, 10)
    category_quotas: dict[str, tuple[int, int]] = field(
        default_factory=lambda: {"world": (4, 12), "sports": (1, 6), "business": (1, 6)}
    )
    sample_pool_size: int = 200


@dataclass
class CacheConfig:
    """Configuration for the in-memory cache.

    Attributes:
        ttl_seconds: Lifetime of memoized listings and sample pools
        max_entries: Optional bound on resident entries (None means unbounded)
    """

    ttl_seconds: int = 300
    max_entries: int | None = 10000


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "feed_central.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    distribution: DistributionConfig = field(default_factory=DistributionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            for sub_key, sub_value in value.items():
                if isinstance(sub_value, dict) and isinstance(data[key].get(sub_key), dict):
                    data[key][sub_key].update(sub_value)
                elif sub_key in data[key]:
                    data[key][sub_key] = sub_value
        else:
            data[key] = value
    return _fromdict(data)


def _profile_asdict(profile: RateLimitProfile) -> dict[str, Any]:
    return {
        "delay": profile.delay,
        "max_retries": profile.max_retries,
        "retry_delay": profile.retry_delay,
    }


def _profile_fromdict(data: dict[str, Any] | RateLimitProfile) -> RateLimitProfile:
    if isinstance(data, RateLimitProfile):
        return data
    default = RateLimitProfile()
    return RateLimitProfile(
        delay=float(data.get("delay", default.delay)),
        max_retries=int(data.get("max_retries", default.max_retries)),
        retry_delay=float(data.get("retry_delay", default.retry_delay)),
    )


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "fetch": {
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "max_redirects": cfg.fetch.max_redirects,
            "trust_env": cfg.fetch.trust_env,
            "user_agent": cfg.fetch.user_agent,
            "download_dir": cfg.fetch.download_dir,
            "concurrency": cfg.fetch.concurrency,
            "default_rate_limit": _profile_asdict(cfg.fetch.default_rate_limit),
            "rate_limits": {
                host: _profile_asdict(profile) for host, profile in cfg.fetch.rate_limits.items()
            },
        },
        "distribution": {
            "window_days": cfg.distribution.window_days,
            "category_window_days": dict(cfg.distribution.category_window_days),
            "sources_per_page": cfg.distribution.sources_per_page,
            "window_overlap": cfg.distribution.window_overlap,
            "default_quota": list(cfg.distribution.default_quota),
            "category_quotas": {
                name: list(caps) for name, caps in cfg.distribution.category_quotas.items()
            },
            "sample_pool_size": cfg.distribution.sample_pool_size,
        },
        "cache": {
            "ttl_seconds": cfg.cache.ttl_seconds,
            "max_entries": cfg.cache.max_entries,
        },
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    fetch = dict(data["fetch"])
    fetch["default_rate_limit"] = _profile_fromdict(fetch["default_rate_limit"])
    fetch["rate_limits"] = {
        host: _profile_fromdict(profile) for host, profile in fetch["rate_limits"].items()
    }

    distribution = dict(data["distribution"])
    distribution["default_quota"] = tuple(distribution["default_quota"])
    distribution["category_quotas"] = {
        name: tuple(caps) for name, caps in distribution["category_quotas"].items()
    }

    return AppConfig(
        fetch=FetchConfig(**fetch),
        distribution=DistributionConfig(**distribution),
        cache=CacheConfig(**data["cache"]),
        logging=LoggingConfig(**data["logging"]),
    )
