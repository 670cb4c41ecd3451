"""Outbound call pacing.

The adapter depends on the abstract limiter so a shared, cross-process
backend can replace the in-memory one without touching the executor.
"""

from ghadapter.adapters.rate_limit.base import AbstractRateLimiter, Permit
from ghadapter.adapters.rate_limit.in_memory import PacedConcurrencyLimiter

__all__ = ["AbstractRateLimiter", "PacedConcurrencyLimiter", "Permit"]
