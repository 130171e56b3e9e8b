"""
Edge cache package.

Provides the cache capability consumed by the fetch pipeline: an in-process
LRU for single-node use and a Redis backend. Both honour the max-age the
pipeline advertises; neither inspects response bodies.
"""

from .edge_cache import EdgeCache, MemoryEdgeCache, freshness_seconds
from .redis_cache import RedisEdgeCache

__all__ = ["EdgeCache", "MemoryEdgeCache", "RedisEdgeCache", "freshness_seconds"]
