"""
Token-bucket throttle for the quota-limited recognition service
"""

import asyncio
import time
from typing import Awaitable, Callable
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket with a full refill every `interval_ms`.

    acquire() takes one token. With the bucket empty it suspends the caller
    until the next refill boundary plus `margin_ms`, refills, then proceeds.
    No more than `limit` acquisitions start within one interval anchored at
    the last refill. Only ever used from a single control flow per process.
    """

    def __init__(
        self,
        limit: int,
        interval_ms: int,
        margin_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.interval_ms = interval_ms
        self.margin_ms = margin_ms
        self._clock = clock
        self._sleep = sleep
        self.tokens = limit
        self.last_refill = self._now_ms()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _refill(self, now_ms: float):
        self.tokens = self.limit
        self.last_refill = now_ms

    async def acquire(self):
        """Take one token, blocking until the next refill when exhausted."""
        now = self._now_ms()
        if now - self.last_refill > self.interval_ms:
            self._refill(now)

        if self.tokens <= 0:
            wait_ms = self.interval_ms - (now - self.last_refill) + self.margin_ms
            logger.info(f"[RateLimit] Quota exhausted. Waiting {wait_ms / 1000:.0f}s...")
            await self._sleep(wait_ms / 1000)
            self._refill(self._now_ms())

        self.tokens -= 1
