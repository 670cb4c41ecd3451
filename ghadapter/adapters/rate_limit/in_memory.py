"""In-memory pacing limiter for outbound API calls.

Notes:
- Per-process only: every worker process paces itself independently.
- Must be shared by every caller in the process to be effective; see
  ``ghadapter.core.rate_limit.get_rate_limiter``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from ghadapter.adapters.rate_limit.base import AbstractRateLimiter, Permit

logger = logging.getLogger(__name__)


class PacedConcurrencyLimiter(AbstractRateLimiter):
    """Limit in-flight calls and space out their starts.

    Two constraints apply to every admission:
    - at most ``max_concurrent`` calls hold a slot at once;
    - two successive call starts are at least ``min_interval_seconds`` apart.

    Waiters pass a FIFO turnstile (``asyncio.Lock`` wakes waiters in arrival
    order), so only the head of the queue ever competes for a slot.
    """

    def __init__(
        self,
        *,
        max_concurrent: int,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_concurrent: Maximum number of calls in flight.
            min_interval_seconds: Minimum spacing between call starts.
            clock: Monotonic time source in seconds.
            sleep: Coroutine used to wait out the spacing.

        Raises:
            ValueError: If max_concurrent or min_interval_seconds are invalid.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")

        self._max_concurrent = max_concurrent
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._turnstile = asyncio.Lock()
        self._slots = asyncio.Semaphore(max_concurrent)
        self._tickets = itertools.count(1)
        self._last_start: float | None = None
        self._in_flight = 0
        self._queued = 0
        self._admitted = 0

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    async def _wait_for_spacing(self) -> None:
        if self._last_start is None or self._min_interval == 0:
            return
        delay = self._last_start + self._min_interval - self._clock()
        if delay > 0:
            await self._sleep(delay)

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[Permit]:
        enqueued_at = self._clock()
        self._queued += 1
        try:
            async with self._turnstile:
                await self._slots.acquire()
                try:
                    await self._wait_for_spacing()
                except BaseException:
                    self._slots.release()
                    raise
                self._last_start = self._clock()
        finally:
            self._queued -= 1

        self._in_flight += 1
        self._admitted += 1
        permit = Permit(
            ticket=next(self._tickets),
            admitted_at=self._last_start,
            waited_seconds=self._last_start - enqueued_at,
        )
        if permit.waited_seconds > 0:
            logger.debug(
                "rate_limit.admitted",
                extra={
                    "ticket": permit.ticket,
                    "waited_s": round(permit.waited_seconds, 4),
                    "queued": self._queued,
                },
            )
        try:
            yield permit
        finally:
            self._in_flight -= 1
            self._slots.release()

    def stats(self) -> dict[str, int | float]:
        return {
            "max_concurrent": self._max_concurrent,
            "min_interval_seconds": self._min_interval,
            "in_flight": self._in_flight,
            "queued": self._queued,
            "admitted": self._admitted,
        }
