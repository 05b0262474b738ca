"""
Rate-limited, retrying feed fetching.

FeedFetcher acquires raw feed payloads with httpx while respecting per-origin
politeness settings:
1. Requests to one origin are spaced by the origin's profile delay
2. Failed attempts are classified and retried with a status-dependent delay
3. Download-first mode stages the body in a temporary file before decoding

Only exhaustion of all attempts surfaces to the caller, as FetchExhausted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
import tempfile
import time
from typing import Awaitable, Callable
from urllib.parse import urlsplit
import uuid

import httpx

from ..config import FetchConfig, RateLimitProfile
from ..errors import (
    FetchError,
    FetchExhausted,
    FetchTimeout,
    Forbidden,
    NetworkError,
    RateLimited,
)
from ..logging_utils import get_logger, log_event
from .rate_limit import RateLimiter


@dataclass
class FetchResult:
    """Result of a feed fetch.

    Either text will be populated (success) or error will be populated (failure),
    but never both. status_code may be None for network-level failures.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code of the final attempt, if any
        text: The decoded feed body, or None on error
        error: Error message if the fetch failed, None on success
        attempts: Number of attempts made
    """
    url: str
    status_code: int | None
    text: str | None
    error: str | None
    attempts: int = 0


BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}


def build_headers(location: str, user_agent: str) -> dict[str, str]:
    """Browser-like headers with Host and Referer derived from the location."""
    headers = {"User-Agent": user_agent, **BROWSER_HEADERS}
    parts = urlsplit(location)
    if parts.netloc:
        headers["Host"] = parts.netloc
        headers["Referer"] = f"https://{parts.hostname}/"
    return headers


def retry_delay_for(error: FetchError, profile: RateLimitProfile, attempt: int) -> float:
    """Seconds to wait after a failed attempt (attempt numbers start at 1)."""
    if isinstance(error, RateLimited):
        return profile.retry_delay * attempt
    if isinstance(error, Forbidden):
        return profile.retry_delay * 2
    return profile.retry_delay


def _raise_for_status(resp: httpx.Response) -> None:
    code = resp.status_code
    if 200 <= code < 300:
        return
    message = f"Server responded with status {code}: {resp.reason_phrase}"
    if code == 429:
        raise RateLimited(message, status_code=code)
    if code == 403:
        raise Forbidden(message, status_code=code)
    raise NetworkError(message, status_code=code)


class FeedFetcher:
    """Fetches feed payloads with per-origin spacing and retries.

    Args:
        cfg: Fetch configuration (timeouts, headers, rate limit profiles)
        transport: Optional httpx transport (tests use httpx.MockTransport)
        clock: Monotonic clock in seconds, shared with the rate limiter
        sleep: Coroutine used for all waits
        logger: Logger for fetch events
    """

    def __init__(
        self,
        cfg: FetchConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg
        self._transport = transport
        self._sleep = sleep
        self._logger = logger or get_logger("fetch")
        self.rate_limiter = RateLimiter(
            cfg.default_rate_limit,
            cfg.rate_limits,
            clock=clock,
            sleep=sleep,
            logger=self._logger,
        )

    async def fetch(self, location: str, download_first: bool = False) -> FetchResult:
        """Fetch a feed, retrying transient failures.

        Args:
            location: Feed URL
            download_first: Stage the body in a temporary file before decoding

        Returns:
            FetchResult with the decoded body

        Raises:
            FetchExhausted: when every attempt allowed by the origin's profile failed
        """
        profile = self.rate_limiter.profile_for(location)
        max_attempts = max(1, profile.max_retries)
        headers = build_headers(location, self.cfg.user_agent)
        last_error: FetchError | None = None

        log_event(
            self._logger,
            "Starting fetch",
            event="fetch_start",
            location=location,
            download_first=download_first,
        )

        for attempt in range(1, max_attempts + 1):
            await self.rate_limiter.acquire(location)
            log_event(
                self._logger,
                "Fetch attempt",
                level=logging.DEBUG,
                event="fetch_attempt",
                location=location,
                attempt=attempt,
                max_retries=max_attempts,
            )
            try:
                status_code, text = await self._attempt(location, headers, download_first)
            except FetchError as exc:
                last_error = exc
                if attempt < max_attempts:
                    delay = retry_delay_for(exc, profile, attempt)
                    log_event(
                        self._logger,
                        "Fetch attempt failed",
                        level=logging.WARNING,
                        event="fetch_retry",
                        location=location,
                        attempt=attempt,
                        max_retries=max_attempts,
                        status=exc.kind,
                        status_code=exc.status_code,
                        error=str(exc),
                        next_attempt_in=delay,
                    )
                    await self._sleep(delay)
                continue

            log_event(
                self._logger,
                "Fetch successful",
                event="fetch_success",
                location=location,
                attempt=attempt,
                status_code=status_code,
                content_length=len(text),
            )
            return FetchResult(
                url=location, status_code=status_code, text=text, error=None, attempts=attempt
            )

        log_event(
            self._logger,
            "All fetch attempts failed",
            level=logging.ERROR,
            event="fetch_exhausted",
            location=location,
            attempts=max_attempts,
            status=last_error.kind if last_error else None,
            error=str(last_error) if last_error else None,
        )
        raise FetchExhausted(location, max_attempts, last_error)

    async def _attempt(
        self, location: str, headers: dict[str, str], download_first: bool
    ) -> tuple[int, str]:
        """Run one request under a wall-clock deadline.

        httpx timeouts apply per network operation, so a body that trickles in
        would never trip them; the whole attempt is bounded here instead.
        """
        try:
            return await asyncio.wait_for(
                self._request(location, headers, download_first),
                timeout=self.cfg.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise FetchTimeout(
                f"No complete response within {self.cfg.timeout_seconds}s"
            ) from exc

    async def _request(
        self, location: str, headers: dict[str, str], download_first: bool
    ) -> tuple[int, str]:
        """Run one request and map transport failures onto FetchError subclasses."""
        try:
            async with self._client() as client:
                if download_first:
                    return await self._download_and_read(client, location, headers)
                resp = await client.get(location, headers=headers)
                _raise_for_status(resp)
                return resp.status_code, resp.text
        except FetchError:
            raise
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"{type(exc).__name__}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}") from exc
        except OSError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}") from exc

    async def _download_and_read(
        self, client: httpx.AsyncClient, location: str, headers: dict[str, str]
    ) -> tuple[int, str]:
        """Stream the body to a staging file, then read it back as text.

        Disk I/O runs in worker threads. The staging file is removed on every
        exit path, including an expired deadline.
        """
        path = self.staging_path()
        # Created inline so the cleanup below always sees it.
        handle = path.open("wb")
        try:
            async with client.stream("GET", location, headers=headers) as resp:
                _raise_for_status(resp)
                async for chunk in resp.aiter_bytes():
                    await asyncio.to_thread(handle.write, chunk)
                status_code = resp.status_code
            await asyncio.to_thread(handle.close)
            log_event(
                self._logger,
                "Downloaded to staging file",
                level=logging.DEBUG,
                event="fetch_staged",
                location=location,
                path=str(path),
            )
            text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
            return status_code, text
        finally:
            handle.close()
            path.unlink(missing_ok=True)

    def staging_path(self) -> Path:
        base = Path(self.cfg.download_dir) if self.cfg.download_dir else Path(tempfile.gettempdir())
        base.mkdir(parents=True, exist_ok=True)
        return base / f"rss-{uuid.uuid4()}.xml"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.cfg.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.cfg.max_redirects,
            trust_env=self.cfg.trust_env,
            transport=self._transport,
        )
