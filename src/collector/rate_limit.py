"""Fixed-window rate limiting for the write endpoints.

Each client identifier gets ``max_requests`` per window. The counter is
created on the first request, incremented until the window expires, and
then starts over. State lives in process memory; a background sweep drops
expired windows so the map cannot grow without bound.

Client identifiers come from proxy headers and are trivially spoofable.
They are a throttling heuristic, never an identity.
"""

import asyncio
import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from src.config import Settings
from src.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

# Checked in order; x-forwarded-for contributes its first hop
DEFAULT_IP_HEADERS: tuple[str, ...] = ("cf-connecting-ip", "x-real-ip", "x-forwarded-for")
UNKNOWN_CLIENT = "unknown"


def get_client_ip(
    headers: Mapping[str, str],
    strategies: Iterable[str] = DEFAULT_IP_HEADERS,
) -> str:
    for header in strategies:
        value = headers.get(header)
        if not value:
            continue
        first = value.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


class RateLimiter:
    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_rate_limited(self, identifier: str) -> bool:
        if not self.enabled:
            return False

        now = self._clock()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or now > entry.reset_time:
                self._entries[identifier] = RateLimitEntry(1, now + self.window_seconds)
                return False
            if entry.count >= self.max_requests:
                return True
            entry.count += 1
            return False

    def get_remaining_requests(self, identifier: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or now > entry.reset_time:
                return self.max_requests
            return max(0, self.max_requests - entry.count)

    def get_reset_time(self, identifier: str) -> float:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or now > entry.reset_time:
                return now + self.window_seconds
            return entry.reset_time

    def check(self, identifier: str) -> None:
        """Count a request, raising ``RateLimitExceeded`` when over quota."""
        if not self.is_rate_limited(identifier):
            return
        reset_time = self.get_reset_time(identifier)
        retry_after = max(0, math.ceil(reset_time - self._clock()))
        logger.warning(json.dumps({
            "event": "rate_limited",
            "limiter": self.name,
            "client": identifier,
            "retry_after": retry_after,
        }))
        raise RateLimitExceeded(
            retry_after=retry_after,
            limit=self.max_requests,
            remaining=self.get_remaining_requests(identifier),
            reset_time=reset_time,
        )

    def headers(self, identifier: str) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(self.get_remaining_requests(identifier)),
            "X-RateLimit-Reset": str(int(self.get_reset_time(identifier) * 1000)),
        }

    def cleanup(self) -> int:
        """Drop expired windows. Returns how many entries were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.reset_time]
            for key in expired:
                del self._entries[key]
        return len(expired)


@dataclass
class RateLimiters:
    waitlist: RateLimiter
    analytics: RateLimiter

    def __iter__(self):
        return iter((self.waitlist, self.analytics))


def build_rate_limiters(settings: Settings, clock: Callable[[], float] = time.time) -> RateLimiters:
    enabled = settings.rate_limiting_active
    window = settings.rate_limit_window_seconds
    return RateLimiters(
        waitlist=RateLimiter("waitlist", settings.waitlist_rate_limit, window, enabled, clock),
        analytics=RateLimiter("analytics", settings.analytics_rate_limit, window, enabled, clock),
    )


def sweep_once(limiters: Iterable[RateLimiter]) -> int:
    removed = 0
    for limiter in limiters:
        removed += limiter.cleanup()
    if removed:
        logger.debug("Rate limit sweep removed %d expired entries", removed)
    return removed


async def sweep_forever(limiters: Iterable[RateLimiter], interval_seconds: float) -> None:
    """Periodically run ``sweep_once`` until cancelled."""
    limiters = list(limiters)
    while True:
        await asyncio.sleep(interval_seconds)
        sweep_once(limiters)
