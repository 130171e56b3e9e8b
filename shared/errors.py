"""
Shared error handling for the Edge Fetch Proxy.

Every error renders to the two-field ``{error, message}`` body unless a
subclass overrides :meth:`EdgeProxyException.body`.
"""

from typing import Dict, Any, Optional


class EdgeProxyException(Exception):
    """Base exception for Edge Fetch Proxy services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def body(self) -> Dict[str, Any]:
        """JSON body for this error."""
        return {"error": self.code, "message": self.message}

    def headers(self) -> Dict[str, str]:
        """Extra response headers for this error."""
        return {}


class InputError(EdgeProxyException):
    """Missing, malformed or non-https target."""

    def __init__(self, message: str = "Invalid URL provided.", details: Optional[Dict[str, Any]] = None):
        super().__init__("bad_request", message, 400, details)


class PolicyError(EdgeProxyException):
    """Target rejected by the private-network guard."""

    def __init__(
        self,
        message: str = "Target host is not allowed.",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__("blocked_target", message, 403, details)


class NotFoundError(EdgeProxyException):
    """No route for the requested method and path."""

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("not_found", message, 404, details)


class RateLimitedError(EdgeProxyException):
    """Client exhausted its fixed-window quota."""

    def __init__(self, retry_after_seconds: int, details: Optional[Dict[str, Any]] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__("rate_limited", "Rate limit exceeded", 429, details)

    def body(self) -> Dict[str, Any]:
        return {"error": self.code, "retryAfterSeconds": self.retry_after_seconds}

    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class UpstreamError(EdgeProxyException):
    """Transport failure while reaching the origin.

    The body shares the success summary field set so callers can read one
    schema regardless of outcome.
    """

    def __init__(
        self,
        target_url: str,
        elapsed_ms: int,
        message: str = "Failed to fetch upstream URL.",
        details: Optional[Dict[str, Any]] = None
    ):
        self.target_url = target_url
        self.elapsed_ms = elapsed_ms
        super().__init__("upstream_fetch_failed", message, 502, details)

    def body(self) -> Dict[str, Any]:
        return {
            "targetUrl": self.target_url,
            "status": None,
            "elapsedMs": self.elapsed_ms,
            "contentType": None,
            "preview": None,
            "error": self.code,
            "message": self.message,
        }

    def headers(self) -> Dict[str, str]:
        return {"X-Edge-Fetch-Ms": str(self.elapsed_ms)}
