"""
Edge fetch proxy service.
"""

from typing import Callable, Dict, Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import NotFoundError, RateLimitedError
from shared.logging import set_client_key
from service_fetch_proxy.app.adapters.origin_client import OriginClient
from service_fetch_proxy.app.caching import EdgeCache, MemoryEdgeCache, RedisEdgeCache
from service_fetch_proxy.app.domain.fetch_pipeline import FetchPipeline
from service_fetch_proxy.app.domain.responses import ProxyResponse, error_response, json_response
from service_fetch_proxy.app.ratelimit import (
    CounterStore,
    FixedWindowRateLimiter,
    RateLimitDecision,
    client_key,
)
from service_fetch_proxy.app.ratelimit.client_identity import client_colo, client_country


SERVICE_NAME = "fetch_proxy"
DEFAULT_PORT = 8787

IP_NOTE = (
    "Client IP is not guaranteed here. In production it may appear in trusted headers "
    "(e.g., CF-Connecting-IP), but local dev often won't show it."
)


def to_http_response(response: ProxyResponse) -> Response:
    """Render a proxy response through Starlette."""
    return Response(
        content=response.body,
        status_code=response.status_code,
        headers=response.headers,
    )


class FetchProxyService(BaseService):
    """Rate-limited, edge-cached HTTPS fetch proxy."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache: Optional[EdgeCache] = None,
        origin: Optional[OriginClient] = None,
        counter_store: Optional[CounterStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config)

        self.cache = cache if cache is not None else self._build_cache()
        self.origin = origin if origin is not None else OriginClient(
            timeout_seconds=self.config.origin_timeout_seconds,
            follow_redirects=self.config.origin_follow_redirects,
        )
        self.pipeline = FetchPipeline(
            self.cache,
            self.origin,
            max_age_seconds=self.config.cache_max_age_seconds,
            metrics=self.metrics,
        )
        self.rate_limiter = FixedWindowRateLimiter(counter_store, clock=clock)

        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.fetch_proxy_service = self

    def _build_cache(self) -> EdgeCache:
        backend = self.config.cache_backend.lower()
        if backend == "redis":
            return RedisEdgeCache(self.config.redis_url)
        if backend != "memory":
            self.logger.warning("Unknown cache backend, using memory", backend=backend)
        return MemoryEdgeCache(max_entries=self.config.cache_max_entries)

    async def on_shutdown(self) -> None:
        await self.origin.close()
        await self.cache.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        if isinstance(self.cache, RedisEdgeCache):
            return {"redis": "ok" if await self.cache.ping() else "unavailable"}
        return {"cache": "memory"}

    def _enforce_rate_limit(self, request: Request) -> RateLimitDecision:
        """Count the request against the caller's fixed window."""
        key = client_key(request.headers)
        set_client_key(key)
        return self.rate_limiter.check(
            key,
            self.config.rate_limit_max_requests,
            self.config.rate_limit_window_seconds,
        )

    def _set_rate_limit_headers(self, response: Response, decision: RateLimitDecision) -> None:
        """Propagate rate limiting metadata via standard headers."""
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(decision.reset_in_seconds)

    def _setup_proxy_routes(self):
        """Set up proxy routes. The not-found fallback must be registered last."""

        @self.app.get("/fetch")
        async def fetch(request: Request):
            """Fetch an https target through the edge cache."""
            decision = self._enforce_rate_limit(request)
            if not decision.allowed:
                self.metrics.increment_counter("rejections_total", reason="rate_limited")
                response = to_http_response(error_response(RateLimitedError(decision.retry_after_seconds)))
                self._set_rate_limit_headers(response, decision)
                return response

            targets = request.query_params.getlist("url")
            proxied = await self.pipeline.handle(targets[0] if targets else None)
            response = to_http_response(proxied)
            self._set_rate_limit_headers(response, decision)
            return response

        @self.app.get("/whoami")
        async def whoami(request: Request):
            """Echo what the edge knows about the caller."""
            return to_http_response(json_response({
                "method": request.method,
                "pathname": request.url.path,
                "userAgent": request.headers.get("user-agent") or "unknown",
                "country": client_country(request.headers),
                "colo": client_colo(request.headers),
                "ipNote": IP_NOTE,
            }))

        @self.app.api_route(
            "/{path:path}",
            methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            include_in_schema=False,
        )
        async def not_found(request: Request, path: str):
            raise NotFoundError(
                f"No route for {request.method} {request.url.path}. "
                "Try /whoami or /fetch?url=https://example.com"
            )


def create_app(config: Optional[ServiceConfig] = None, **overrides):
    """Create FastAPI application."""
    service = FetchProxyService(config, **overrides)
    return service.app


if __name__ == "__main__":
    service = FetchProxyService()
    service.run()
