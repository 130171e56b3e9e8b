"""
Cache-aside fetch pipeline.

validate -> guard -> cache lookup -> timed origin fetch -> summarize -> cache store.

The cache entry is written only after the miss path has fully built its
response, and it is exactly the response returned to the caller.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, TYPE_CHECKING, Union

import httpx

from shared.errors import EdgeProxyException, InputError, PolicyError, UpstreamError
from shared.logging import get_logger
from ..adapters.origin_client import OriginClient
from ..caching.edge_cache import EdgeCache
from ..validation import InvalidTarget, TargetURL, is_blocked, validate_target
from .responses import (
    CACHE_CONTROL_HEADER,
    CACHE_HEADER,
    CACHE_HIT,
    CACHE_MISS,
    ELAPSED_HEADER,
    ProxyResponse,
    error_response,
    json_response,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_METHOD = "GET"
PREVIEW_LIMIT = 300
DEFAULT_MAX_AGE_SECONDS = 60
UPSTREAM_FAILURE_MESSAGE = "Failed to fetch upstream URL."


@dataclass(frozen=True)
class FetchSuccess:
    """Origin answered (any HTTP status)."""

    response: httpx.Response
    elapsed_ms: int


@dataclass(frozen=True)
class FetchFailure:
    """Origin could not be reached."""

    elapsed_ms: int
    message: str


FetchOutcome = Union[FetchSuccess, FetchFailure]


def cache_key(target: TargetURL) -> str:
    return f"{CACHE_METHOD} {target.canonical()}"


def is_previewable(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.startswith("text/") or "application/json" in content_type


class FetchPipeline:
    """Serves ``/fetch`` requests through the edge cache."""

    def __init__(
        self,
        cache: EdgeCache,
        origin: OriginClient,
        *,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        metrics: Optional["MetricsCollector"] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.cache = cache
        self.origin = origin
        self.max_age_seconds = max_age_seconds
        self.metrics = metrics
        self.timer = timer
        self.logger = get_logger("fetch_proxy.pipeline")

    async def handle(self, raw_target: Optional[str]) -> ProxyResponse:
        """Produce the response for one fetch request. Never raises."""
        try:
            target = self._validate(raw_target)
            self._guard(target)
        except (InputError, PolicyError) as exc:
            return error_response(exc)

        key = cache_key(target)
        cached = await self.cache.match(key)
        if cached is not None:
            self._record("cache_lookups_total", result="hit")
            self.logger.debug("Edge cache hit", target=str(target))
            return cached.with_header(CACHE_HEADER, CACHE_HIT)

        self._record("cache_lookups_total", result="miss")

        outcome = await self._timed_fetch(target)
        if isinstance(outcome, FetchFailure):
            return self._upstream_failure(target, outcome)

        response = await self._summarize(target, outcome)
        await self.cache.put(key, response)
        return response

    def _validate(self, raw_target: Optional[str]) -> TargetURL:
        result = validate_target(raw_target)
        if isinstance(result, InvalidTarget):
            self._record("rejections_total", reason=result.reason)
            self.logger.info("Target rejected", reason=result.reason)
            raise InputError(result.message, details={"reason": result.reason})
        return result

    def _guard(self, target: TargetURL) -> None:
        if is_blocked(target.hostname):
            self._record("rejections_total", reason="blocked_target")
            self.logger.warning("Blocked private network target", hostname=target.hostname)
            raise PolicyError(
                "Target host resolves to a local or private network and is not allowed.",
                details={"hostname": target.hostname},
            )

    async def _timed_fetch(self, target: TargetURL) -> FetchOutcome:
        start = self.timer()
        try:
            response = await self.origin.open(target.canonical())
        except httpx.RequestError as exc:
            elapsed_ms = self._elapsed_ms(start)
            self._record("origin_fetches_total", outcome="failure")
            return FetchFailure(elapsed_ms=elapsed_ms, message=str(exc) or UPSTREAM_FAILURE_MESSAGE)

        elapsed_ms = self._elapsed_ms(start)
        self._record("origin_fetches_total", outcome="success")
        if self.metrics:
            self.metrics.observe_histogram("origin_fetch_duration_seconds", elapsed_ms / 1000)
        return FetchSuccess(response=response, elapsed_ms=elapsed_ms)

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self.timer() - start) * 1000))

    async def _summarize(self, target: TargetURL, outcome: FetchSuccess) -> ProxyResponse:
        upstream = outcome.response
        content_type = upstream.headers.get("content-type")
        try:
            preview = await self._read_preview(upstream, content_type)
        finally:
            await upstream.aclose()

        self.logger.info(
            "Origin fetched",
            target=str(target),
            status_code=upstream.status_code,
            elapsed_ms=outcome.elapsed_ms,
        )
        return json_response(
            {
                "targetUrl": target.canonical(),
                "status": upstream.status_code,
                "elapsedMs": outcome.elapsed_ms,
                "contentType": content_type,
                "preview": preview,
            },
            200,
            {
                ELAPSED_HEADER: str(outcome.elapsed_ms),
                CACHE_CONTROL_HEADER: f"public, max-age={self.max_age_seconds}",
                CACHE_HEADER: CACHE_MISS,
            },
        )

    async def _read_preview(self, upstream: httpx.Response, content_type: Optional[str]) -> Optional[str]:
        if not is_previewable(content_type):
            return None
        chunks = []
        collected = 0
        try:
            # Stop once the preview is full; the rest of the body is never read
            async for chunk in upstream.aiter_text():
                chunks.append(chunk)
                collected += len(chunk)
                if collected >= PREVIEW_LIMIT:
                    break
        except (httpx.HTTPError, LookupError) as exc:
            # Preview is best effort; a broken body still yields a summary
            self.logger.info("Preview unavailable", error=str(exc))
            return None
        return "".join(chunks)[:PREVIEW_LIMIT]

    def _upstream_failure(self, target: TargetURL, outcome: FetchFailure) -> ProxyResponse:
        exc: EdgeProxyException = UpstreamError(
            target_url=target.canonical(),
            elapsed_ms=outcome.elapsed_ms,
            message=outcome.message,
        )
        self.logger.warning(
            "Upstream fetch failed",
            target=str(target),
            elapsed_ms=outcome.elapsed_ms,
            error=outcome.message,
        )
        return error_response(exc).with_header(CACHE_HEADER, CACHE_MISS)

    def _record(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
