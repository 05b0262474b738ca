"""Tests for the rate-limited, retrying feed fetcher."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from feed_central.config import FetchConfig, RateLimitProfile
from feed_central.errors import FetchExhausted, FetchTimeout, Forbidden, NetworkError, RateLimited
from feed_central.fetch.fetcher import FeedFetcher, retry_delay_for
from feed_central.fetch.rate_limit import origin_of


FEED = "<rss><channel><title>Example</title></channel></rss>"


class FakeTime:
    """Deterministic clock whose sleep advances time and records the wait."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _config(delay=0.0, max_retries=3, retry_delay=1.0, **kwargs) -> FetchConfig:
    kwargs.setdefault("trust_env", False)
    return FetchConfig(
        default_rate_limit=RateLimitProfile(
            delay=delay, max_retries=max_retries, retry_delay=retry_delay
        ),
        rate_limits={},
        **kwargs,
    )


def _fetcher(cfg: FetchConfig, handler, fake: FakeTime) -> FeedFetcher:
    return FeedFetcher(
        cfg,
        transport=httpx.MockTransport(handler),
        clock=fake.clock,
        sleep=fake.sleep,
    )


def test_fetch_returns_body_on_success():
    fake = FakeTime()
    fetcher = _fetcher(_config(), lambda request: httpx.Response(200, text=FEED), fake)

    result = asyncio.run(fetcher.fetch("https://example.com/rss.xml"))

    assert result.text == FEED
    assert result.status_code == 200
    assert result.error is None
    assert result.attempts == 1
    assert fake.sleeps == []


def test_requests_to_same_origin_are_spaced_by_delay(monkeypatch):
    fake = FakeTime()
    started: list[float] = []
    fetcher = _fetcher(
        _config(delay=2.0), lambda request: httpx.Response(200, text=FEED), fake
    )
    acquire = fetcher.rate_limiter.acquire

    async def recording_acquire(location: str) -> float:
        waited = await acquire(location)
        started.append(fake.now)
        return waited

    monkeypatch.setattr(fetcher.rate_limiter, "acquire", recording_acquire)

    async def run() -> None:
        await asyncio.gather(
            fetcher.fetch("https://example.com/a.xml"),
            fetcher.fetch("https://example.com/b.xml"),
            fetcher.fetch("https://example.com/c.xml"),
        )
        await fetcher.fetch("https://example.com/d.xml")

    asyncio.run(run())

    assert len(started) == 4
    gaps = [later - earlier for earlier, later in zip(started, started[1:])]
    assert all(gap >= 2.0 for gap in gaps)


def test_different_origins_do_not_wait_for_each_other():
    fake = FakeTime()
    fetcher = _fetcher(_config(delay=5.0), lambda request: httpx.Response(200, text=FEED), fake)

    async def run():
        return await asyncio.gather(
            fetcher.fetch("https://one.example.com/rss"),
            fetcher.fetch("https://two.example.com/rss"),
            fetcher.fetch("http://one.example.com/rss"),
        )

    results = asyncio.run(run())

    assert [r.text for r in results] == [FEED, FEED, FEED]
    assert fake.sleeps == []


def test_always_429_is_attempted_max_retries_times():
    fake = FakeTime()
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429)

    fetcher = _fetcher(_config(max_retries=4, retry_delay=1.5), handler, fake)

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert calls == 4
    assert excinfo.value.attempts == 4
    assert isinstance(excinfo.value.last_error, RateLimited)
    assert excinfo.value.status_code == 429
    # Rate-limited retries back off linearly with the attempt number.
    assert fake.sleeps == [1.5, 3.0, 4.5]


def test_forbidden_retry_delay_is_double_the_base():
    fake = FakeTime()
    fetcher = _fetcher(
        _config(max_retries=3, retry_delay=2.0), lambda request: httpx.Response(403), fake
    )

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert isinstance(excinfo.value.last_error, Forbidden)
    assert fake.sleeps == [4.0, 4.0]


def test_timeout_is_classified_and_retried_with_base_delay():
    fake = FakeTime()

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = _fetcher(_config(max_retries=3, retry_delay=1.0), handler, fake)

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert isinstance(excinfo.value.last_error, FetchTimeout)
    assert fake.sleeps == [1.0, 1.0]


def _dripping_response(request: httpx.Request) -> httpx.Response:
    async def drip():
        for byte in b"abcdef":
            await asyncio.sleep(0.05)
            yield bytes([byte])

    return httpx.Response(200, content=drip())


def test_slowly_dripping_body_hits_attempt_deadline():
    fake = FakeTime()
    fetcher = _fetcher(_config(max_retries=1, timeout_seconds=0.12), _dripping_response, fake)

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert isinstance(excinfo.value.last_error, FetchTimeout)
    assert excinfo.value.attempts == 1


def test_slow_download_first_body_is_cleaned_up_after_deadline(tmp_path):
    fake = FakeTime()
    staging = tmp_path / "staging"
    fetcher = _fetcher(
        _config(max_retries=2, timeout_seconds=0.12, download_dir=str(staging)),
        _dripping_response,
        fake,
    )

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/rss", download_first=True))

    assert isinstance(excinfo.value.last_error, FetchTimeout)
    assert fake.sleeps == [1.0]
    assert list(staging.iterdir()) == []


def test_body_within_deadline_is_returned():
    fake = FakeTime()
    fetcher = _fetcher(_config(timeout_seconds=5.0), _dripping_response, fake)

    result = asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert result.text == "abcdef"


def test_transient_failure_then_success():
    fake = FakeTime()
    responses = [httpx.Response(503), httpx.Response(200, text=FEED)]
    fetcher = _fetcher(_config(max_retries=3), lambda request: responses.pop(0), fake)

    result = asyncio.run(fetcher.fetch("https://example.com/rss"))

    assert result.text == FEED
    assert result.attempts == 2
    assert fake.sleeps == [1.0]


def test_redirects_are_followed():
    fake = FakeTime()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://example.com/new"})
        return httpx.Response(200, text=FEED)

    fetcher = _fetcher(_config(), handler, fake)

    result = asyncio.run(fetcher.fetch("https://example.com/old"))

    assert result.text == FEED


def test_redirect_loop_exhausts_as_network_error():
    fake = FakeTime()
    fetcher = _fetcher(
        _config(max_retries=1),
        lambda request: httpx.Response(302, headers={"Location": "https://example.com/loop"}),
        fake,
    )

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/loop"))

    assert isinstance(excinfo.value.last_error, NetworkError)
    assert fake.sleeps == []


def test_browser_headers_are_sent():
    fake = FakeTime()
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200, text=FEED)

    fetcher = _fetcher(_config(), handler, fake)
    asyncio.run(fetcher.fetch("https://news.example.com/feed.xml"))

    assert "Mozilla/5.0" in seen["user-agent"]
    assert seen["host"] == "news.example.com"
    assert seen["referer"] == "https://news.example.com/"
    assert "application/xml" in seen["accept"]


def test_download_first_reads_staged_file_and_removes_it(tmp_path):
    fake = FakeTime()
    staging = tmp_path / "staging"
    payload = "<rss>café</rss>"
    fetcher = _fetcher(
        _config(download_dir=str(staging)),
        lambda request: httpx.Response(200, content=payload.encode("utf-8")),
        fake,
    )

    result = asyncio.run(fetcher.fetch("https://example.com/feed.xml", download_first=True))

    assert result.text == payload
    assert list(staging.iterdir()) == []


def test_download_first_removes_staged_file_when_read_fails(tmp_path, monkeypatch):
    fake = FakeTime()
    staging = tmp_path / "staging"
    fetcher = _fetcher(
        _config(max_retries=2, download_dir=str(staging)),
        lambda request: httpx.Response(200, content=b"<rss/>"),
        fake,
    )

    def broken_read_text(self, *args, **kwargs):
        raise OSError("disk went away")

    monkeypatch.setattr(Path, "read_text", broken_read_text)

    with pytest.raises(FetchExhausted) as excinfo:
        asyncio.run(fetcher.fetch("https://example.com/feed.xml", download_first=True))

    assert excinfo.value.attempts == 2
    assert isinstance(excinfo.value.last_error, NetworkError)
    assert list(staging.iterdir()) == []


def test_download_first_leaves_nothing_behind_on_http_error(tmp_path):
    fake = FakeTime()
    staging = tmp_path / "staging"
    fetcher = _fetcher(
        _config(max_retries=1, download_dir=str(staging)),
        lambda request: httpx.Response(500),
        fake,
    )

    with pytest.raises(FetchExhausted):
        asyncio.run(fetcher.fetch("https://example.com/feed.xml", download_first=True))

    assert list(staging.iterdir()) == []


def test_host_override_profile_is_used():
    cfg = _config()
    cfg.rate_limits = {"www.thestar.com": RateLimitProfile(delay=5.0, max_retries=5, retry_delay=5.0)}
    fetcher = FeedFetcher(cfg)

    profile = fetcher.rate_limiter.profile_for("https://www.thestar.com/feeds/news.xml")
    default = fetcher.rate_limiter.profile_for("https://other.example.com/rss")

    assert profile.max_retries == 5
    assert default is cfg.default_rate_limit


def test_origin_of_uses_scheme_and_host():
    assert origin_of("https://example.com/a/b?c=d") == ("https://example.com", "example.com")
    assert origin_of("not a url") == ("not a url", "not a url")


def test_retry_delay_for_generic_error_is_base_delay():
    profile = RateLimitProfile(delay=0, max_retries=3, retry_delay=2.5)
    assert retry_delay_for(NetworkError("boom"), profile, attempt=3) == 2.5
    assert retry_delay_for(RateLimited("slow down", 429), profile, attempt=3) == 7.5
