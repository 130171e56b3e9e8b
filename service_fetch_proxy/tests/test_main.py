"""
Unit tests for the fetch proxy service routes.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import ServiceConfig
from service_fetch_proxy.app.adapters.origin_client import OriginClient
from service_fetch_proxy.app.caching import MemoryEdgeCache
from service_fetch_proxy.app.main import FetchProxyService, create_app
from service_fetch_proxy.app.ratelimit import InMemoryCounterStore


class OriginStub:
    """Counts origin hits and serves a fixed text body."""

    def __init__(self, body: str = "Example Domain", content_type: str = "text/html"):
        self.calls = 0
        self.body = body
        self.content_type = content_type

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(200, headers={"content-type": self.content_type}, text=self.body)


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms


def make_config(**overrides) -> ServiceConfig:
    return ServiceConfig(service_name="fetch_proxy", port=8787, **overrides)


class TestFetchProxyService:
    """Test cases for FetchProxyService."""

    @pytest.fixture
    def origin_stub(self):
        return OriginStub()

    @pytest.fixture
    def counter_store(self):
        return InMemoryCounterStore()

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def service(self, origin_stub, counter_store, clock):
        return FetchProxyService(
            make_config(rate_limit_max_requests=3, rate_limit_window_seconds=60),
            cache=MemoryEdgeCache(),
            origin=OriginClient(transport=httpx.MockTransport(origin_stub)),
            counter_store=counter_store,
            clock=clock,
        )

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def test_fetch_miss_then_hit(self, client, origin_stub):
        first = client.get("/fetch", params={"url": "https://example.com"})
        second = client.get("/fetch", params={"url": "https://example.com"})

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert first.headers["Cache-Control"] == "public, max-age=60"
        assert "X-Edge-Fetch-Ms" in first.headers
        data = first.json()
        assert data["targetUrl"] == "https://example.com/"
        assert data["status"] == 200
        assert isinstance(data["elapsedMs"], int)
        assert data["preview"] == "Example Domain"

        assert second.status_code == 200
        assert second.headers["X-Cache"] == "HIT"
        assert second.content == first.content
        assert origin_stub.calls == 1

    def test_fetch_missing_url(self, client, origin_stub):
        response = client.get("/fetch")

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"
        assert origin_stub.calls == 0

    def test_fetch_plain_http_rejected(self, client, origin_stub):
        response = client.get("/fetch", params={"url": "http://example.com"})

        assert response.status_code == 400
        assert response.json() == {"error": "bad_request", "message": "Only https URLs are allowed."}
        assert origin_stub.calls == 0

    def test_fetch_unencodable_host_rejected(self, client, origin_stub):
        response = client.get("/fetch", params={"url": "https://xn--zz.com/"})

        assert response.status_code == 400
        assert response.json() == {"error": "bad_request", "message": "Invalid URL provided."}
        assert origin_stub.calls == 0

    def test_fetch_private_target_blocked(self, client, origin_stub):
        response = client.get("/fetch", params={"url": "https://192.168.0.1/router"})

        assert response.status_code == 403
        assert response.json()["error"] == "blocked_target"
        assert "X-Cache" not in response.headers
        assert origin_stub.calls == 0

    def test_first_url_parameter_wins(self, client, origin_stub):
        response = client.get("/fetch?url=https://example.com/a&url=https://127.0.0.1/")

        assert response.status_code == 200
        assert response.json()["targetUrl"] == "https://example.com/a"

    def test_rate_limit_headers(self, client):
        response = client.get("/fetch", params={"url": "https://example.com"})

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert response.headers["X-RateLimit-Reset"] == "60"

    def test_rate_limited(self, client, clock, origin_stub):
        for _ in range(3):
            assert client.get("/fetch", params={"url": "https://example.com"}).status_code == 200

        clock.now_ms += 20_000
        response = client.get("/fetch", params={"url": "https://example.com"})

        assert response.status_code == 429
        assert response.json() == {"error": "rate_limited", "retryAfterSeconds": 40}
        assert response.headers["Retry-After"] == "40"
        assert origin_stub.calls == 1

    def test_rate_limit_counts_rejected_targets(self, client):
        for _ in range(3):
            assert client.get("/fetch", params={"url": "http://example.com"}).status_code == 400

        assert client.get("/fetch", params={"url": "https://example.com"}).status_code == 429

    def test_rate_limit_window_reopens(self, client, clock):
        for _ in range(3):
            client.get("/fetch", params={"url": "https://example.com"})
        assert client.get("/fetch", params={"url": "https://example.com"}).status_code == 429

        clock.now_ms += 61_000
        assert client.get("/fetch", params={"url": "https://example.com"}).status_code == 200

    def test_rate_limit_is_per_client(self, client):
        for _ in range(3):
            client.get("/fetch", params={"url": "https://example.com"}, headers={"CF-Connecting-IP": "203.0.113.1"})

        blocked = client.get("/fetch", params={"url": "https://example.com"}, headers={"CF-Connecting-IP": "203.0.113.1"})
        other = client.get("/fetch", params={"url": "https://example.com"}, headers={"CF-Connecting-IP": "203.0.113.2"})

        assert blocked.status_code == 429
        assert other.status_code == 200

    def test_rate_limit_key_uses_request_headers(self, client, counter_store):
        client.get(
            "/fetch",
            params={"url": "https://example.com"},
            headers={
                "CF-Connecting-IP": "203.0.113.9",
                "User-Agent": "probe/1.0",
                "CF-IPCountry": "NL",
                "CF-Ray": "7d1e2f3a4b5c6d7e-AMS",
            },
        )

        assert counter_store.get("203.0.113.9|probe/1.0|NL|AMS").count == 1

    def test_whoami(self, client):
        response = client.get(
            "/whoami",
            headers={"User-Agent": "probe/1.0", "CF-IPCountry": "NL", "CF-Ray": "7d1e2f3a4b5c6d7e-AMS"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["method"] == "GET"
        assert data["pathname"] == "/whoami"
        assert data["userAgent"] == "probe/1.0"
        assert data["country"] == "NL"
        assert data["colo"] == "AMS"
        assert "CF-Connecting-IP" in data["ipNote"]

    def test_whoami_without_edge_headers(self, client):
        data = client.get("/whoami").json()

        assert data["country"] is None
        assert data["colo"] is None

    def test_whoami_is_not_rate_limited(self, client, counter_store):
        for _ in range(5):
            assert client.get("/whoami").status_code == 200

        assert len(counter_store) == 0

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {
            "error": "not_found",
            "message": "No route for GET /nope. Try /whoami or /fetch?url=https://example.com",
        }

    def test_wrong_method_on_fetch(self, client):
        response = client.post("/fetch")

        assert response.status_code == 404
        assert response.json()["message"].startswith("No route for POST /fetch.")

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "fetch_proxy"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "memory"}

    def test_metrics_endpoint(self, client):
        client.get("/fetch", params={"url": "https://example.com"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_lookups_total" in response.text
        assert "origin_fetches_total" in response.text

    def test_request_id_header(self, client):
        response = client.get("/whoami", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_shutdown_closes_origin(self, service):
        with TestClient(service.app) as client:
            client.get("/health")

        assert service.origin._client.is_closed


def test_create_app_defaults():
    app = create_app()
    service = app.state.fetch_proxy_service

    assert isinstance(service.cache, MemoryEdgeCache)
    assert service.config.rate_limit_max_requests == 20
    assert service.config.rate_limit_window_seconds == 60


def test_redis_backend_selected_from_config():
    from service_fetch_proxy.app.caching import RedisEdgeCache

    app = create_app(make_config(cache_backend="redis"))

    assert isinstance(app.state.fetch_proxy_service.cache, RedisEdgeCache)
