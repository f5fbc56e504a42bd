"""
Retry policy and clock used by every polling loop.

The clock is injectable so tests can simulate time without real delay.
"""

import asyncio
import math
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryBudget:
    """Fixed-interval polling budget."""

    max_attempts: int
    interval: float

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")

    @classmethod
    def from_deadline(cls, timeout: float, interval: float) -> "RetryBudget":
        """Budget that covers `timeout` seconds of polling every `interval`."""
        if interval <= 0:
            return cls(max_attempts=1, interval=0)
        return cls(max_attempts=max(1, math.ceil(timeout / interval)), interval=interval)

    @property
    def deadline(self) -> float:
        return self.max_attempts * self.interval


class Clock:
    """Wall clock backed by asyncio.sleep."""

    async def sleep(self, seconds: float):
        await asyncio.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()


DEFAULT_CLOCK = Clock()
