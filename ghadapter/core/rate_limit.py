"""Process-wide outbound rate limiter.

Every GitHub client built by the adapter must pace through the same limiter
instance; two limiters would each allow the full concurrency and rate.
"""

from __future__ import annotations

import logging

from ghadapter.adapters.rate_limit.base import AbstractRateLimiter
from ghadapter.adapters.rate_limit.in_memory import PacedConcurrencyLimiter
from ghadapter.core.config import settings

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, float] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve queue state across calls.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_max_concurrent,
        settings.app.rate_limit_min_interval_seconds,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = PacedConcurrencyLimiter(
            max_concurrent=settings.app.rate_limit_max_concurrent,
            min_interval_seconds=settings.app.rate_limit_min_interval_seconds,
        )
        _limiter_config = config
        logger.info(
            "rate_limit.configured",
            extra={"max_concurrent": config[0], "min_interval_s": config[1]},
        )

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter so the next call builds a fresh one."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None
