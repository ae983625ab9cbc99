"""
Human-like, latency-adaptive pacing between portal interactions.

The portal throttles and blocks clients that click too regularly, so every
wait is drawn from a random window. Windows shrink when the portal answers
quickly and stretch when it is slow.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple

FAST_LATENCY_MS = 1500
SLOW_LATENCY_MS = 4000
FAST_MULTIPLIER = 0.75
SLOW_MULTIPLIER = 1.5


def adaptive_multiplier(latency_ms: float) -> float:
    """Scale factor for sleep bounds given the last measured round trip."""
    if latency_ms < FAST_LATENCY_MS:
        return FAST_MULTIPLIER
    if latency_ms > SLOW_LATENCY_MS:
        return SLOW_MULTIPLIER
    return 1.0


def adaptive_bounds(min_ms: int, max_ms: int, latency_ms: float) -> Tuple[int, int]:
    multiplier = adaptive_multiplier(latency_ms)
    return int(min_ms * multiplier), int(max_ms * multiplier)


class Pacer:
    """Randomized sleeps with an injectable clock, so tests never really wait."""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random = None
    ):
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def sleep_ms(self, ms: float):
        await self._sleep(ms / 1000)

    async def random_sleep(self, min_ms: int, max_ms: int) -> int:
        ms = self._rng.randint(min_ms, max_ms)
        await self.sleep_ms(ms)
        return ms

    async def adaptive_sleep(self, min_ms: int, max_ms: int, latency_ms: float) -> int:
        low, high = adaptive_bounds(min_ms, max_ms, latency_ms)
        return await self.random_sleep(low, high)

    def keystroke_delay_ms(self) -> int:
        return self._rng.randint(30, 129)
