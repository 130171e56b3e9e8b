"""
Adapters package for the fetch proxy.

Contains the HTTP client wrapper for upstream origins. Adapters stay thin:
no retries, no header rewriting, errors surface as httpx exceptions.
"""

from .origin_client import OriginClient

__all__ = ["OriginClient"]
