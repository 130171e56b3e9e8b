"""
Rate limiting package for the fetch proxy.

Holds the fixed-window limiter, its counter store abstraction and the
header-derived client key used to bucket quotas.
"""

from .fixed_window import (
    CounterStore,
    FixedWindowRateLimiter,
    InMemoryCounterStore,
    RateLimitDecision,
    RateWindowEntry,
)
from .client_identity import client_key

__all__ = [
    "CounterStore",
    "FixedWindowRateLimiter",
    "InMemoryCounterStore",
    "RateLimitDecision",
    "RateWindowEntry",
    "client_key",
]
