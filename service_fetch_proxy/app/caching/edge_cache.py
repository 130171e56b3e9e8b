"""
Edge cache capability used by the fetch pipeline.

The pipeline never enforces expiry itself. It advertises freshness with a
``Cache-Control: max-age`` header and the cache backends honour it on store.
"""

import re
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from shared.logging import get_logger
from ..domain.responses import ProxyResponse, CACHE_CONTROL_HEADER


_MAX_AGE_PATTERN = re.compile(r"(?:^|,)\s*max-age\s*=\s*(\d+)", re.IGNORECASE)
_NO_STORE_PATTERN = re.compile(r"(?:^|,)\s*no-store\s*(?:,|$)", re.IGNORECASE)


def freshness_seconds(response: ProxyResponse) -> Optional[int]:
    """max-age advertised by ``response``, 0 for no-store, None when absent."""
    directive = response.header(CACHE_CONTROL_HEADER)
    if not directive:
        return None
    if _NO_STORE_PATTERN.search(directive):
        return 0
    match = _MAX_AGE_PATTERN.search(directive)
    if match is None:
        return None
    return int(match.group(1))


class EdgeCache:
    """Exact-match response cache with overwrite-on-store semantics."""

    async def match(self, key: str) -> Optional[ProxyResponse]:
        raise NotImplementedError

    async def put(self, key: str, response: ProxyResponse) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class MemoryEdgeCache(EdgeCache):
    """In-process LRU cache of proxy responses."""

    def __init__(self, max_entries: int = 1024, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self.clock = clock
        self.logger = get_logger("fetch_proxy.edge_cache")
        self._entries: "OrderedDict[str, Tuple[ProxyResponse, Optional[float]]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    async def match(self, key: str) -> Optional[ProxyResponse]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        response, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            self.logger.debug("Cache entry expired", key=key)
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return response

    async def put(self, key: str, response: ProxyResponse) -> None:
        ttl = freshness_seconds(response)
        if ttl == 0:
            self._entries.pop(key, None)
            return

        expires_at = self.clock() + ttl if ttl is not None else None
        self._entries[key] = (response, expires_at)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self.logger.debug("Cache evict", key=evicted_key)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "backend": "memory",
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 2) if total else 0.0,
        }
