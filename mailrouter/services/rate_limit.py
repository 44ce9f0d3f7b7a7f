"""Fixed-window request counter backed by Redis.

Counts live under ``<prefix>:<identifier>:<window_start>`` and expire after
two windows. Windows are aligned and non-overlapping, so a client can issue
up to ``2 * max_per_window`` requests around a window boundary. The counter is
a plain get/set with no transaction: concurrent requests may lose an
increment, which only makes the limit slightly more generous.
"""

from __future__ import annotations

import logging
import math
import time as _time
from dataclasses import dataclass

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "rl"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int


class RateLimiter:
    def __init__(
        self,
        r: aioredis.Redis,
        window_seconds: int,
        max_per_window: int,
        prefix: str = DEFAULT_PREFIX,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._redis = r
        self.window_seconds = window_seconds
        self.max_per_window = max_per_window
        self.prefix = prefix

    def window_start(self, now: float) -> int:
        return math.floor(now / self.window_seconds) * self.window_seconds

    def key(self, identifier: str, window_start: int) -> str:
        return f"{self.prefix}:{identifier}:{window_start}"

    async def check(self, identifier: str, now: float | None = None) -> RateLimitResult:
        """Count one request for *identifier*; reject once the window is full."""
        if now is None:
            now = _time.time()
        key = self.key(identifier, self.window_start(now))

        current_raw = await self._redis.get(key)
        current = int(current_raw) if current_raw else 0

        if current >= self.max_per_window:
            logger.info("Rate limit exhausted for %s", identifier)
            return RateLimitResult(allowed=False, remaining=0)

        await self._redis.set(key, str(current + 1), ex=self.window_seconds * 2)
        return RateLimitResult(allowed=True, remaining=self.max_per_window - current - 1)
