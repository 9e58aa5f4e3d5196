"""Tests for the response cache interceptor."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.testclient import TestClient

from momento.api.errors import ApiError, NotFoundError, api_exception_handler
from momento.api.middleware.response_cache import CACHE_STATUS_HEADER, ResponseCacheInterceptor
from momento.cache import KeyedCache


def build_app(cache: KeyedCache, calls: list[str]) -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(ApiError, api_exception_handler)

    @app.get("/items/{item_id}")
    @ResponseCacheInterceptor("item", key_fn=lambda r: r.path_params["item_id"], cache=cache)
    async def get_item(item_id: str) -> dict:
        calls.append(item_id)
        if item_id == "missing":
            raise NotFoundError("Item", item_id)
        if item_id == "boom":
            raise RuntimeError("store unavailable")
        return {"id": item_id, "tags": ["b", "a"], "count": len(calls)}

    @app.get("/echo")
    @ResponseCacheInterceptor("echo", key_fn=lambda r: r.query_params.get("q", ""), cache=cache)
    async def echo(request: Request, q: str = "") -> dict:
        calls.append(q)
        return {"q": q, "path": request.url.path}

    @app.get("/gone")
    @ResponseCacheInterceptor("gone", key_fn=lambda r: "x", cache=cache)
    async def gone() -> JSONResponse:
        calls.append("gone")
        return JSONResponse(status_code=410, content={"error": "gone"})

    @app.get("/text")
    @ResponseCacheInterceptor("text", key_fn=lambda r: "x", cache=cache)
    async def text() -> PlainTextResponse:
        calls.append("text")
        return PlainTextResponse("plain")

    @app.get("/ttl")
    @ResponseCacheInterceptor("ttl", key_fn=lambda r: "x", ttl=lambda r: 42.0, cache=cache)
    async def ttl() -> dict:
        return {"ok": True}

    return app


@pytest.fixture
def cache() -> KeyedCache:
    return KeyedCache(max_size=100, default_ttl=60)


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def client(cache: KeyedCache, calls: list[str]) -> TestClient:
    return TestClient(build_app(cache, calls), raise_server_exceptions=False)


class TestCacheTransparency:
    """Test that hits are indistinguishable from misses."""

    def test_miss_then_hit_is_byte_identical(self, client: TestClient, calls: list[str]) -> None:
        """Second request is served from cache with the same body."""
        first = client.get("/items/1")
        second = client.get("/items/1")

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.content == second.content
        assert first.headers[CACHE_STATUS_HEADER] == "MISS"
        assert second.headers[CACHE_STATUS_HEADER] == "HIT"
        assert second.headers["content-type"].startswith("application/json")
        assert calls == ["1"]

    def test_cached_value_is_serialized_body(self, client: TestClient, cache: KeyedCache) -> None:
        """The stored value is the exact response bytes."""
        response = client.get("/items/7")
        assert cache.get("item:7") == response.content

    def test_distinct_keys_run_endpoint(self, client: TestClient, calls: list[str]) -> None:
        """Different discriminators are cached separately."""
        client.get("/items/1")
        client.get("/items/2")
        assert calls == ["1", "2"]

    def test_invalidated_key_runs_endpoint_again(
        self, client: TestClient, cache: KeyedCache, calls: list[str]
    ) -> None:
        """After deletion the next read recomputes."""
        client.get("/items/1")
        cache.delete("item:1")
        response = client.get("/items/1")

        assert response.headers[CACHE_STATUS_HEADER] == "MISS"
        assert response.json()["count"] == 2

    def test_endpoint_with_request_parameter(self, client: TestClient, calls: list[str]) -> None:
        """Endpoints that take the Request still receive it."""
        first = client.get("/echo", params={"q": "x"})
        second = client.get("/echo", params={"q": "x"})

        assert first.json() == {"q": "x", "path": "/echo"}
        assert second.headers[CACHE_STATUS_HEADER] == "HIT"
        assert calls == ["x"]

    def test_callable_ttl(self, client: TestClient, cache: KeyedCache) -> None:
        """A callable TTL is resolved per request."""
        client.get("/ttl")
        entry = cache._entries["ttl:x"]
        assert entry.expires_at - entry.created_at == pytest.approx(42.0)


class TestNotCached:
    """Test responses that must not be stored."""

    def test_api_error_propagates_uncached(
        self, client: TestClient, cache: KeyedCache, calls: list[str]
    ) -> None:
        """Domain errors reach the error handler and are not cached."""
        first = client.get("/items/missing")
        second = client.get("/items/missing")

        assert first.status_code == 404
        assert first.json()["code"] == "NotFound"
        assert second.status_code == 404
        assert calls == ["missing", "missing"]
        assert len(cache) == 0

    def test_unexpected_error_propagates(self, client: TestClient, cache: KeyedCache) -> None:
        """Endpoint exceptions are not swallowed."""
        response = client.get("/items/boom")
        assert response.status_code == 500
        assert len(cache) == 0

    def test_error_status_response_not_cached(
        self, client: TestClient, cache: KeyedCache, calls: list[str]
    ) -> None:
        """Returned responses with status >= 400 pass through."""
        client.get("/gone")
        response = client.get("/gone")

        assert response.status_code == 410
        assert calls == ["gone", "gone"]
        assert len(cache) == 0

    def test_non_json_response_not_cached(self, client: TestClient, calls: list[str]) -> None:
        """Only JSON bodies are stored."""
        client.get("/text")
        response = client.get("/text")

        assert response.text == "plain"
        assert calls == ["text", "text"]


class TestBypass:
    """Test requests that skip the cache entirely."""

    @pytest.mark.asyncio
    async def test_write_request_never_touches_cache(self) -> None:
        """Non-idempotent requests neither read nor write the cache."""
        cache = MagicMock()
        interceptor = ResponseCacheInterceptor("post", key_fn=lambda r: "1", cache=cache)
        request = MagicMock()
        request.method = "DELETE"
        call = AsyncMock(return_value={"deleted": True})

        result = await interceptor.handle(request, call)

        assert result == {"deleted": True}
        call.assert_awaited_once()
        cache.get.assert_not_called()
        cache.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_should_bypass_predicate(self) -> None:
        """A custom predicate can skip the cache for reads."""
        cache = MagicMock()
        interceptor = ResponseCacheInterceptor(
            "post", key_fn=lambda r: "1", should_bypass=lambda r: True, cache=cache
        )
        request = MagicMock()
        request.method = "GET"

        await interceptor.handle(request, AsyncMock(return_value={}))

        cache.get.assert_not_called()
        cache.set.assert_not_called()

    def test_interceptor_exposed_on_endpoint(self) -> None:
        """Decorated endpoints carry their interceptor."""
        interceptor = ResponseCacheInterceptor("post", key_fn=lambda r: "1")

        @interceptor
        async def endpoint() -> dict:
            return {}

        assert endpoint.cache_interceptor is interceptor
        assert "_cache_request" in str(endpoint.__signature__)
