"""
Countdown timers for timed phases.

remaining_seconds() is the pure sequence of values a countdown shows.
Countdown paces that sequence with an awaitable sleep. Each `async for`
starts a fresh countdown; cancelling is just stopping the iteration.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Iterator

SleepFunc = Callable[[float], Awaitable[None]]


def remaining_seconds(seconds: int) -> Iterator[int]:
    """Yield seconds, seconds - 1, ..., 0."""
    if seconds < 0:
        raise ValueError(f"Countdown length must be >= 0, got {seconds}")
    yield from range(seconds, -1, -1)


class Countdown:
    """
    Async countdown yielding the remaining seconds once per tick.

    The first value is yielded immediately and 0 is yielded after the
    last tick, so a 3 second countdown yields 3, 2, 1, 0 and sleeps
    three times.
    """

    def __init__(
        self,
        seconds: int,
        tick_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.seconds = seconds
        self.tick_seconds = tick_seconds
        self._sleep = sleep

    def __aiter__(self) -> AsyncIterator[int]:
        return self._run()

    async def _run(self) -> AsyncIterator[int]:
        for remaining in remaining_seconds(self.seconds):
            yield remaining
            if remaining > 0:
                await self._sleep(self.tick_seconds)
