"""Supervisor boundary for webhook dispatches running in the background.

Dispatches are not awaited by whoever received the delivery, so their
failures need a home. Every dispatch run through the supervisor produces an
Outcome in one bounded channel, and failures are logged with guidance for
the common misconfigurations. The failure policy decides what happens next:

- ``log``: record, log and keep serving other deliveries;
- ``raise``: record, log and re-raise to the caller of ``run``/``join``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from ghadapter.core.errors import (
    PRIVATE_KEY_HINT,
    AppError,
    AuthenticationError,
    SigningError,
)

logger = logging.getLogger(__name__)

FailurePolicy = Literal["log", "raise"]

_PRIVATE_KEY_MARKERS = (
    "PEM_read_bio",
    "Could not deserialize key data",
    "A JSON web token could not be decoded",
)


@dataclass(frozen=True)
class Outcome:
    """Result of one supervised dispatch."""

    name: str
    ok: bool
    duration_s: float
    error: BaseException | None = None


def failure_hint(error: BaseException) -> str | None:
    """Guidance for known failure causes, None for anything else."""

    if isinstance(error, AppError) and error.hint:
        return error.hint
    message = str(error)
    if any(marker in message for marker in _PRIVATE_KEY_MARKERS):
        return PRIVATE_KEY_HINT
    return None


class Supervisor:
    """Runs dispatches, records their outcomes and applies the failure policy."""

    def __init__(self, failure_policy: FailurePolicy = "log", max_outcomes: int = 1000) -> None:
        if failure_policy not in ("log", "raise"):
            raise ValueError("failure_policy must be 'log' or 'raise'")
        self.failure_policy = failure_policy
        self._outcomes: deque[Outcome] = deque(maxlen=max_outcomes)
        self._tasks: set[asyncio.Task] = set()
        self._unjoined_errors: list[BaseException] = []

    async def run(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Outcome:
        """Await ``func(*args, **kwargs)`` and record its outcome.

        Raises:
            Exception: The dispatch failure, only under the ``raise`` policy.
        """
        started = time.perf_counter()
        try:
            await func(*args, **kwargs)
        except Exception as exc:
            outcome = Outcome(name=name, ok=False, duration_s=time.perf_counter() - started, error=exc)
            self._record(outcome)
            if self.failure_policy == "raise":
                raise
            return outcome

        outcome = Outcome(name=name, ok=True, duration_s=time.perf_counter() - started)
        self._record(outcome)
        return outcome

    def spawn(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> asyncio.Task:
        """Schedule a dispatch on the running loop without awaiting it."""

        task = asyncio.create_task(self._run_logged(name, func, *args, **kwargs), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_logged(self, name: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Outcome:
        # Spawned tasks never raise; join() applies the policy instead
        started = time.perf_counter()
        try:
            await func(*args, **kwargs)
        except Exception as exc:
            outcome = Outcome(name=name, ok=False, duration_s=time.perf_counter() - started, error=exc)
            if self.failure_policy == "raise":
                self._unjoined_errors.append(exc)
        else:
            outcome = Outcome(name=name, ok=True, duration_s=time.perf_counter() - started)
        self._record(outcome)
        return outcome

    async def join(self) -> list[Outcome]:
        """Wait for the spawned dispatches still running and return their outcomes.

        Raises:
            Exception: The first failure of a spawned dispatch since the last
                join, under the ``raise`` policy.
        """
        outcomes: list[Outcome] = []
        if self._tasks:
            outcomes = await asyncio.gather(*list(self._tasks))
        errors, self._unjoined_errors = self._unjoined_errors, []
        if self.failure_policy == "raise" and errors:
            raise errors[0]
        return outcomes

    def outcomes(self) -> list[Outcome]:
        return list(self._outcomes)

    def drain(self) -> list[Outcome]:
        """Return and forget all recorded outcomes."""
        drained = list(self._outcomes)
        self._outcomes.clear()
        return drained

    def failures(self) -> list[Outcome]:
        return [outcome for outcome in self._outcomes if not outcome.ok]

    def _record(self, outcome: Outcome) -> None:
        self._outcomes.append(outcome)
        if outcome.ok:
            logger.debug("dispatch.succeeded", extra={"dispatch": outcome.name, "duration_s": round(outcome.duration_s, 4)})
            return

        error = outcome.error
        hint = failure_hint(error) if error is not None else None
        extra = {
            "dispatch": outcome.name,
            "error_type": type(error).__name__,
            "error_msg": str(error),
            "policy": self.failure_policy,
        }
        if isinstance(error, AppError):
            extra["error_code"] = error.code
        if hint:
            # Known misconfigurations: log the fix, not the traceback
            logger.error(hint, extra=extra)
        elif isinstance(error, (AuthenticationError, SigningError)):
            logger.error("dispatch.authentication_failed", extra=extra)
        else:
            logger.error("dispatch.failed", extra=extra, exc_info=error)
