"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later migrate to a shared store without changing the
HTTP layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision, RatePolicy
from app.adapters.rate_limit.in_memory import (
    CounterSnapshot,
    FixedWindowCounterTable,
    InMemoryFixedWindowRateLimiter,
)

__all__ = [
    "AbstractRateLimiter",
    "CounterSnapshot",
    "FixedWindowCounterTable",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitDecision",
    "RatePolicy",
]
