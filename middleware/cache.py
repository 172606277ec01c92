# middleware/cache.py
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from config import CacheTTL
from functions.caller_identity import get_caller_identity
from schemas.cache import CachedResponse
from services.cache_keys import default_cache_key, search_cache_key
from services.cache_service import CacheService

logger = logging.getLogger(__name__)

CACHE_HEADER = "X-Cache"

# Not replayed from the cache: recomputed per response or caller-specific
UNCACHED_HEADERS = {"content-length", "set-cookie", "x-cache"}

KeyBuilder = Callable[[str, str, Optional[str]], str]


@dataclass(frozen=True)
class CacheRule:
    """Caching policy for GET requests under a path prefix."""
    prefix: str
    ttl: int
    key_builder: KeyBuilder = default_cache_key
    # Public responses do not depend on the caller, so identity is left out of the key
    public: bool = False

    def matches(self, path: str) -> bool:
        prefix = self.prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


DEFAULT_CACHE_RULES = (
    CacheRule("/api/search/suggestions", CacheTTL.SUGGESTIONS, search_cache_key, public=True),
    CacheRule("/api/search", CacheTTL.SEARCH, search_cache_key, public=True),
    CacheRule("/api/products", CacheTTL.PRODUCT_CATALOG, default_cache_key, public=True),
    CacheRule("/api/categories", CacheTTL.CATEGORIES, default_cache_key, public=True),
    CacheRule("/api/users", CacheTTL.USER_PROFILE, default_cache_key),
    CacheRule("/api/orders", CacheTTL.USER_PROFILE, default_cache_key),
)


def is_no_store(response: Response) -> bool:
    return "no-store" in response.headers.get("cache-control", "").lower()


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Serve GET responses from Redis when present, otherwise capture the
    downstream response and store it if it was successful.
    """

    def __init__(self, app, cache: CacheService, rules: Sequence[CacheRule] = DEFAULT_CACHE_RULES):
        super().__init__(app)
        self.cache = cache
        self.rules = tuple(rules)

    def match_rule(self, path: str) -> Optional[CacheRule]:
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None

    async def dispatch(self, request: Request, call_next):
        if request.method != "GET":
            return await call_next(request)

        rule = self.match_rule(request.url.path)
        if rule is None:
            return await call_next(request)

        caller_id = None if rule.public else get_caller_identity(request)
        key = rule.key_builder(request.url.path, request.url.query, caller_id)

        cached = await run_in_threadpool(self.cache.get_response, key)
        # A failed or skipped lookup leaves the store unavailable; no write-back then
        cache_usable = self.cache.available
        if cached is not None:
            response = Response(
                content=cached.body_bytes,
                status_code=cached.status_code,
                headers=cached.headers,
                media_type=cached.content_type or None,
            )
            response.headers[CACHE_HEADER] = "HIT"
            return response

        downstream = await call_next(request)
        body = b"".join([chunk async for chunk in downstream.body_iterator])

        response = Response(
            content=body,
            status_code=downstream.status_code,
            background=downstream.background,
        )
        response.raw_headers = list(downstream.raw_headers)
        response.headers[CACHE_HEADER] = "MISS"

        if cache_usable and 200 <= downstream.status_code < 300 and not is_no_store(downstream):
            snapshot = CachedResponse.capture(
                status_code=downstream.status_code,
                content_type=downstream.headers.get("content-type", ""),
                headers={
                    name: value
                    for name, value in downstream.headers.items()
                    if name.lower() not in UNCACHED_HEADERS
                },
                body=body,
            )
            await run_in_threadpool(self.cache.store_response, key, snapshot, rule.ttl)

        return response
