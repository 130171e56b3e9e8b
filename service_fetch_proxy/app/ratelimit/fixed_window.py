"""
Fixed-window rate limiter for the fetch proxy.

State is per process. Every node keeps its own counters and they reset on
restart; there is no cross-node coordination.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from shared.logging import get_logger


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateWindowEntry:
    """Counter for one client key within the current window."""

    window_start_ms: int
    count: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single rate limit check."""

    allowed: bool
    retry_after_seconds: int
    limit: int
    remaining: int
    reset_in_seconds: int


class CounterStore:
    """Key/value store for rate window entries.

    ``get`` and ``set`` are synchronous. The limiter's read-modify-write has no
    suspension point, which keeps it consistent under single-threaded asyncio
    scheduling. A threaded deployment needs a store that serialises updates.
    """

    def get(self, key: str) -> Optional[RateWindowEntry]:
        raise NotImplementedError

    def set(self, key: str, entry: RateWindowEntry) -> None:
        raise NotImplementedError


class InMemoryCounterStore(CounterStore):
    """Process-wide dict of window entries. Entries are overwritten, never deleted."""

    def __init__(self):
        self._entries: Dict[str, RateWindowEntry] = {}

    def get(self, key: str) -> Optional[RateWindowEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: RateWindowEntry) -> None:
        self._entries[key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class FixedWindowRateLimiter:
    """Counts requests per client key in fixed, non-sliding windows."""

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.store = store if store is not None else InMemoryCounterStore()
        self.clock = clock or _now_ms
        self.logger = get_logger("fetch_proxy.rate_limiter")

    def check(self, client_key: str, max_requests: int, window_seconds: int) -> RateLimitDecision:
        """Count one request for ``client_key`` and decide whether it may proceed."""
        now = self.clock()
        window_ms = window_seconds * 1000
        entry = self.store.get(client_key)

        if entry is None or now - entry.window_start_ms >= window_ms:
            self.store.set(client_key, RateWindowEntry(window_start_ms=now, count=1))
            return RateLimitDecision(
                allowed=True,
                retry_after_seconds=0,
                limit=max_requests,
                remaining=max(0, max_requests - 1),
                reset_in_seconds=window_seconds,
            )

        remaining_ms = window_ms - (now - entry.window_start_ms)
        reset_in_seconds = math.ceil(remaining_ms / 1000)

        if entry.count >= max_requests:
            self.logger.warning(
                "Rate limit exceeded",
                client_key=client_key,
                count=entry.count,
                limit=max_requests,
                retry_after_seconds=reset_in_seconds,
            )
            return RateLimitDecision(
                allowed=False,
                retry_after_seconds=reset_in_seconds,
                limit=max_requests,
                remaining=0,
                reset_in_seconds=reset_in_seconds,
            )

        entry.count += 1
        self.store.set(client_key, entry)
        return RateLimitDecision(
            allowed=True,
            retry_after_seconds=0,
            limit=max_requests,
            remaining=max(0, max_requests - entry.count),
            reset_in_seconds=reset_in_seconds,
        )
