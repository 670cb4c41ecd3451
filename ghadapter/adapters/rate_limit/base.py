"""Rate limiter interfaces.

The request executor depends on this abstraction (not the concrete
implementation) so the storage/coordination backend can be swapped later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass


@dataclass(frozen=True)
class Permit:
    """Admission granted to one outbound call.

    Attributes:
        ticket: Monotonically increasing admission number.
        admitted_at: Clock reading when the call was allowed to start.
        waited_seconds: Time spent queued before admission.
    """

    ticket: int
    admitted_at: float
    waited_seconds: float


class AbstractRateLimiter(ABC):
    """Interface for outbound call limiters."""

    @abstractmethod
    def admit(self) -> AbstractAsyncContextManager[Permit]:
        """Wait for an admission slot and hold it for the ``async with`` body.

        Callers are admitted in arrival order. Nothing is ever rejected;
        backpressure shows up only as latency. The slot is released when the
        body exits, whether it returned or raised.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int | float]:
        """Return in-flight/queued counters for observability."""
        raise NotImplementedError
