"""Randomized delay applied after every outbound request."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_BASE_SECONDS = 1.5
DEFAULT_JITTER = (0.8, 1.2)


class PacingPolicy:
    """
    Sleep for ``base_seconds`` scaled by a uniform factor from ``jitter``.

    One instance is shared by every client in a run. ``sleep`` and ``rng`` are
    injectable so tests can observe delays without waiting.
    """

    def __init__(
        self,
        base_seconds: float = DEFAULT_BASE_SECONDS,
        jitter: Tuple[float, float] = DEFAULT_JITTER,
        *,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        low, high = jitter
        if base_seconds < 0:
            raise ValueError("base_seconds must be >= 0")
        if low < 0 or high < low:
            raise ValueError(f"invalid jitter range: {jitter}")
        self.base_seconds = float(base_seconds)
        self.jitter = (float(low), float(high))
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self.total_waited = 0.0
        self.wait_count = 0

    @classmethod
    def disabled(cls) -> "PacingPolicy":
        return cls(base_seconds=0.0)

    def next_delay(self) -> float:
        if self.base_seconds == 0:
            return 0.0
        low, high = self.jitter
        return self.base_seconds * self._rng.uniform(low, high)

    async def wait(self, label: str = "") -> float:
        delay = self.next_delay()
        self.wait_count += 1
        if delay <= 0:
            return 0.0
        logger.debug(f"pacing {label or 'request'}: {delay:.2f}s")
        await self._sleep(delay)
        self.total_waited += delay
        return delay
