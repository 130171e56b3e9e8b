"""
Unit tests for the edge cache backends.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from service_fetch_proxy.app.caching import MemoryEdgeCache, RedisEdgeCache, freshness_seconds
from service_fetch_proxy.app.domain.responses import ProxyResponse, json_response


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def cached_response(max_age=None, body=None):
    headers = {"X-Cache": "MISS"}
    if max_age is not None:
        headers["Cache-Control"] = f"public, max-age={max_age}"
    return json_response(body or {"status": 200}, 200, headers)


class TestFreshnessSeconds:
    """Test cases for max-age parsing."""

    @pytest.mark.parametrize("directive, expected", [
        ("public, max-age=60", 60),
        ("max-age=0", 0),
        ("MAX-AGE = 15, public", 15),
        ("no-store", 0),
        ("private, no-store", 0),
        ("public", None),
        ("s-maxage=30", None),
    ])
    def test_directives(self, directive, expected):
        response = ProxyResponse(200, {"Cache-Control": directive}, b"{}")

        assert freshness_seconds(response) == expected

    def test_missing_header(self):
        assert freshness_seconds(ProxyResponse(200, {}, b"{}")) is None


class TestMemoryEdgeCache:
    """Test cases for MemoryEdgeCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return MemoryEdgeCache(max_entries=2, clock=clock)

    @pytest.mark.asyncio
    async def test_miss_on_empty_cache(self, cache):
        assert await cache.match("GET https://example.com/") is None
        assert cache.get_stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_put_then_match(self, cache):
        response = cached_response(60)

        await cache.put("GET https://example.com/", response)

        assert await cache.match("GET https://example.com/") is response
        assert cache.get_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_put_overwrites(self, cache):
        await cache.put("k", cached_response(60, {"v": 1}))
        await cache.put("k", cached_response(60, {"v": 2}))

        assert (await cache.match("k")).json() == {"v": 2}
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_entry_expires_after_max_age(self, cache, clock):
        await cache.put("k", cached_response(60))

        clock.now += 59
        assert await cache.match("k") is not None

        clock.now += 1
        assert await cache.match("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_no_max_age_never_expires(self, cache, clock):
        await cache.put("k", cached_response())

        clock.now += 10_000
        assert await cache.match("k") is not None

    @pytest.mark.asyncio
    async def test_zero_max_age_is_not_stored(self, cache):
        await cache.put("k", cached_response(0))

        assert await cache.match("k") is None

    @pytest.mark.asyncio
    async def test_least_recently_used_is_evicted(self, cache):
        await cache.put("a", cached_response(60))
        await cache.put("b", cached_response(60))
        await cache.match("a")
        await cache.put("c", cached_response(60))

        assert await cache.match("a") is not None
        assert await cache.match("b") is None
        assert await cache.match("c") is not None


class TestRedisEdgeCache:
    """Test cases for RedisEdgeCache."""

    @pytest.fixture
    def cache(self):
        return RedisEdgeCache("redis://localhost:6379/0")

    @pytest.mark.asyncio
    async def test_match_hit(self, cache):
        response = cached_response(60)

        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.get.return_value = json.dumps(response.to_dict()).encode("utf-8")

            result = await cache.match("GET https://example.com/")

            assert result == response
            mock_redis.get.assert_called_once_with(cache._make_key("GET https://example.com/"))

    @pytest.mark.asyncio
    async def test_match_miss(self, cache):
        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.get.return_value = None

            assert await cache.match("GET https://example.com/") is None

    @pytest.mark.asyncio
    async def test_put_uses_max_age_as_ttl(self, cache):
        response = cached_response(60)

        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await cache.put("GET https://example.com/", response)

            mock_redis.setex.assert_called_once()
            key, ttl, payload = mock_redis.setex.call_args.args
            assert key == cache._make_key("GET https://example.com/")
            assert ttl == 60
            assert ProxyResponse.from_dict(json.loads(payload)) == response

    @pytest.mark.asyncio
    async def test_put_without_max_age(self, cache):
        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await cache.put("k", cached_response())

            mock_redis.set.assert_called_once()
            mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_connection_error_is_a_miss(self, cache):
        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.side_effect = Exception("Redis connection failed")

            assert await cache.match("k") is None

    @pytest.mark.asyncio
    async def test_store_error_is_swallowed(self, cache):
        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.setex.side_effect = Exception("READONLY")

            await cache.put("k", cached_response(60))

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, cache):
        with patch.object(cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.get.return_value = b"not json"

            assert await cache.match("k") is None

    def test_keys_are_prefixed_and_hashed(self, cache):
        key = cache._make_key("GET https://example.com/")

        assert key.startswith("edge_cache:")
        assert key != cache._make_key("GET https://example.org/")
