"""Tests for YAML configuration loading."""

from __future__ import annotations

from feed_central.config import AppConfig, RateLimitProfile, load_config


def test_load_config_without_path_returns_defaults():
    cfg = load_config(None)

    assert cfg == AppConfig()
    assert cfg.fetch.default_rate_limit == RateLimitProfile(2.0, 3, 2.0)
    assert cfg.fetch.rate_limits["www.thestar.com"].max_retries == 5
    assert cfg.distribution.default_quota == (2, 10)


def test_yaml_values_override_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
fetch:
  timeout_seconds: 15
  default_rate_limit:
    delay: 0.5
  rate_limits:
    feeds.example.com:
      delay: 10
      max_retries: 2
distribution:
  sources_per_page: 6
  category_quotas:
    tech: [1, 4]
logging:
  level: DEBUG
unknown_section:
  ignored: true
""",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.fetch.timeout_seconds == 15
    # Partial profile keeps the remaining defaults.
    assert cfg.fetch.default_rate_limit == RateLimitProfile(delay=0.5, max_retries=3, retry_delay=2.0)
    assert cfg.fetch.rate_limits["feeds.example.com"] == RateLimitProfile(10.0, 2, 2.0)
    assert "www.thestar.com" in cfg.fetch.rate_limits
    assert cfg.distribution.sources_per_page == 6
    assert cfg.distribution.category_quotas["tech"] == (1, 4)
    assert cfg.distribution.category_quotas["world"] == (4, 12)
    assert cfg.distribution.window_days == 3
    assert cfg.logging.level == "DEBUG"
    assert cfg.cache.ttl_seconds == 300


def test_empty_yaml_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == AppConfig()
