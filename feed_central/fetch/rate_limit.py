"""
Per-origin request spacing.

Each origin (scheme + host) owns an asyncio.Lock and a RateLimitState. The
wait-then-record step runs under that origin's lock, so concurrent callers
to one origin are spaced out one by one while other origins are unaffected.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Awaitable, Callable
from urllib.parse import urlsplit

from ..config import RateLimitProfile
from ..logging_utils import log_event


@dataclass
class RateLimitState:
    profile: RateLimitProfile
    last_request: float | None = None


def origin_of(location: str) -> tuple[str, str]:
    """Return (origin, host) for a URL.

    Unparsable locations are their own origin, mirroring how a bare host
    string would be rate limited.
    """
    try:
        parts = urlsplit(location)
    except ValueError:
        return location, location
    if not parts.scheme or not parts.hostname:
        return location, location
    return f"{parts.scheme}://{parts.netloc}", parts.hostname


class RateLimiter:
    """Tracks the last request time per origin and enforces spacing.

    Args:
        default_profile: Profile for origins without an override
        overrides: Profiles keyed by host or by full origin
        clock: Monotonic clock in seconds
        sleep: Coroutine used to wait
        logger: Optional logger for wait events
    """

    def __init__(
        self,
        default_profile: RateLimitProfile,
        overrides: dict[str, RateLimitProfile] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ):
        self.default_profile = default_profile
        self.overrides = dict(overrides or {})
        self._clock = clock
        self._sleep = sleep
        self._logger = logger
        self._states: dict[str, RateLimitState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def profile_for(self, location: str) -> RateLimitProfile:
        origin, host = origin_of(location)
        return self.overrides.get(host) or self.overrides.get(origin) or self.default_profile

    def state_for(self, origin: str) -> RateLimitState | None:
        return self._states.get(origin)

    async def acquire(self, location: str) -> float:
        """Wait until the origin of location may be contacted again.

        Records the new request time before returning.

        Returns:
            Seconds spent waiting
        """
        origin, _host = origin_of(location)
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            state = self._states.get(origin)
            if state is None:
                state = RateLimitState(profile=self.profile_for(location))
                self._states[origin] = state

            waited = 0.0
            if state.last_request is not None:
                waited = max(0.0, state.last_request + state.profile.delay - self._clock())
            if waited > 0:
                log_event(
                    self._logger,
                    "Rate limit wait",
                    event="rate_limit_wait",
                    origin=origin,
                    wait_seconds=round(waited, 3),
                )
                await self._sleep(waited)

            state.last_request = self._clock()
            return waited
