import logging
import threading
import time
from typing import Callable, Optional

import redis
from pydantic import ValidationError

from config import CACHE_RECONNECT_INTERVAL, REDIS_URL
from schemas.cache import CachedResponse
from services.exceptions import CacheConnectionError

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-backed response store.

    Read/write helpers never raise: an unreachable store is logged and treated
    as a miss so requests behave as if there were no caching layer. While the
    store is down it is not contacted at all, except for one reconnect probe
    per `reconnect_interval`.

    Nothing connects at construction; the first `ready()` call probes.
    """

    def __init__(
        self,
        redis_url: str = REDIS_URL,
        client: Optional[redis.Redis] = None,
        reconnect_interval: float = CACHE_RECONNECT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.redis = client or redis.from_url(
            redis_url,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        self.reconnect_interval = reconnect_interval
        self.clock = clock
        self.available = False
        self._next_probe = 0.0
        self._probe_lock = threading.Lock()

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def ready(self) -> bool:
        """True when the store may be used; re-probes an unavailable store at most once per interval."""
        if self.available:
            return True

        with self._probe_lock:
            if self.available:
                return True
            if self.clock() < self._next_probe:
                return False

            if self.ping():
                self.available = True
                logger.info("Redis connection established")
            else:
                self._next_probe = self.clock() + self.reconnect_interval
                logger.warning(
                    f"Redis not reachable, response caching disabled for {self.reconnect_interval:g}s"
                )
            return self.available

    def get_response(self, key: str) -> Optional[CachedResponse]:
        if not self.ready():
            return None

        try:
            cached = self.redis.get(key)
        except redis.RedisError as e:
            self._mark_unavailable("get", e)
            return None

        if cached is None:
            logger.debug(f"Cache miss for key: {key}")
            return None

        try:
            response = CachedResponse.model_validate_json(cached)
        except ValidationError as e:
            logger.error(f"Failed to deserialize cached response for {key}: {e}")
            return None

        logger.debug(f"Cache hit for key: {key}")
        return response

    def store_response(self, key: str, response: CachedResponse, ttl: int) -> bool:
        if not self.ready():
            return False

        try:
            self.redis.setex(key, ttl, response.model_dump_json())
        except redis.RedisError as e:
            self._mark_unavailable("set", e)
            return False
        logger.debug(f"Cache set for key: {key}, TTL: {ttl}s")
        return True

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Always attempted, even while the store is marked unavailable, since a
        skipped eviction would outlive the outage. Raises CacheConnectionError
        so invalidation workers can log the failure against the pattern.
        """
        try:
            keys = list(self.redis.scan_iter(match=pattern, count=500))
            if not keys:
                return 0
            deleted = self.redis.delete(*keys)
        except redis.RedisError as e:
            self._mark_unavailable("delete", e)
            raise CacheConnectionError(str(e), {"pattern": pattern})
        logger.info(f"Cache invalidated {deleted} keys matching '{pattern}'")
        return deleted

    def _mark_unavailable(self, operation: str, error: Exception) -> None:
        with self._probe_lock:
            self.available = False
            self._next_probe = self.clock() + self.reconnect_interval
        logger.warning(f"Redis {operation} error, bypassing cache: {error}")
