"""Read-path response cache for FastAPI endpoints.

Wraps a GET endpoint so that a cache hit answers from memory without
running the endpoint, and a miss runs it once and stores the serialized
JSON body.

Example:
    @router.get("/posts/{post_id}", response_model=Post)
    @ResponseCacheInterceptor(
        Namespace.POST,
        key_fn=lambda request: request.path_params["post_id"],
        ttl=configured_ttl("cache_ttl_post"),
    )
    async def get_post(post_id: str, session: AsyncSession = Depends(get_session)):
        ...

Hit bodies are byte-identical to the miss body that populated them: the
payload is serialized exactly once, and those bytes are both stored and
returned.

Between the lookup and the store the endpoint awaits the database, so two
concurrent misses for the same key both run the endpoint and the last one
to finish wins. An in-flight miss that started before a mutation committed
can store the older payload after the mutation's invalidation; the entry
then lives until its TTL.
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Awaitable, Callable

import orjson
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import Response

from momento.cache.keys import Namespace, make_key
from momento.cache.memory import KeyedCache
from momento.observability.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

CACHE_STATUS_HEADER = "X-Cache"
JSON_MEDIA_TYPE = "application/json"
CACHEABLE_METHODS = frozenset({"GET", "HEAD"})

_INJECTED_REQUEST = "_cache_request"

KeyFunction = Callable[[Request], str]
BypassFunction = Callable[[Request], bool]
TtlSource = float | Callable[[Request], float] | None


def _non_idempotent(request: Request) -> bool:
    return request.method not in CACHEABLE_METHODS


class ResponseCacheInterceptor:
    """Decorator caching an endpoint's JSON response under namespace:key."""

    def __init__(
        self,
        namespace: Namespace | str,
        key_fn: KeyFunction,
        ttl: TtlSource = None,
        should_bypass: BypassFunction | None = None,
        cache: KeyedCache | None = None,
    ):
        self.namespace = namespace.value if isinstance(namespace, Namespace) else namespace
        self.key_fn = key_fn
        self.ttl = ttl
        self.should_bypass = should_bypass or _non_idempotent
        self.cache = cache

    def __call__(self, endpoint: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        signature = inspect.signature(endpoint, eval_str=True)
        request_param = next(
            (
                name
                for name, param in signature.parameters.items()
                if param.annotation is Request
            ),
            None,
        )

        # The endpoint may not ask for the Request; FastAPI still has to
        # inject one for the wrapper.
        if request_param is None:
            params = list(signature.parameters.values())
            params.append(
                inspect.Parameter(
                    _INJECTED_REQUEST, inspect.Parameter.KEYWORD_ONLY, annotation=Request
                )
            )
            signature = signature.replace(parameters=params)

        @functools.wraps(endpoint)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if request_param is None:
                request: Request = kwargs.pop(_INJECTED_REQUEST)
            else:
                request = kwargs[request_param]
            return await self.handle(request, lambda: endpoint(*args, **kwargs))

        wrapper.__signature__ = signature  # type: ignore[attr-defined]
        wrapper.cache_interceptor = self  # type: ignore[attr-defined]
        return wrapper

    def _cache_for(self, request: Request) -> KeyedCache:
        return self.cache if self.cache is not None else request.app.state.cache

    async def handle(self, request: Request, call: Callable[[], Awaitable[Any]]) -> Any:
        """Run one request through the cache."""
        if _non_idempotent(request) or self.should_bypass(request):
            return await call()

        cache = self._cache_for(request)
        key = make_key(self.namespace, self.key_fn(request))

        cached = cache.get(key)
        if cached is not None:
            record_cache_hit(self.namespace)
            logger.debug(f"Cache hit for {key}")
            return self._response(cached, "HIT")

        record_cache_miss(self.namespace)
        result = await call()

        if isinstance(result, Response):
            if result.status_code >= 400 or not _is_json(result):
                return result
            body = bytes(result.body)
        else:
            body = orjson.dumps(jsonable_encoder(result))

        ttl = self.ttl(request) if callable(self.ttl) else self.ttl
        cache.set(key, body, ttl)
        logger.debug(f"Cached {len(body)} bytes for {key}")
        return self._response(body, "MISS")

    @staticmethod
    def _response(body: bytes, status: str) -> Response:
        return Response(
            content=body,
            media_type=JSON_MEDIA_TYPE,
            headers={CACHE_STATUS_HEADER: status},
        )


def _is_json(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.startswith(JSON_MEDIA_TYPE) and hasattr(response, "body")

