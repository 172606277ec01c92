# middleware/invalidation.py
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from config import INVALIDATION_WORKERS
from functions.caller_identity import get_caller_identity
from services.cache_keys import public_pattern, search_pattern, user_pattern
from services.cache_service import CacheService

logger = logging.getLogger(__name__)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


@dataclass(frozen=True)
class InvalidationRule:
    """Cache patterns to evict after a successful write under one of the path prefixes."""
    prefixes: Tuple[str, ...]
    patterns: Callable[[Optional[str]], List[str]]

    def matches(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.prefixes)


def _catalog_patterns(caller_id: Optional[str]) -> List[str]:
    return [
        search_pattern(),
        public_pattern("/api/products"),
        public_pattern("/api/categories"),
    ]


def _user_patterns(caller_id: Optional[str]) -> List[str]:
    if not caller_id:
        return []
    return [user_pattern(caller_id)]


def _order_patterns(caller_id: Optional[str]) -> List[str]:
    if not caller_id:
        return []
    return [
        user_pattern(caller_id, "/api/orders"),
        user_pattern(caller_id, "/api/users/orders"),
    ]


DEFAULT_INVALIDATION_RULES = (
    InvalidationRule(("/api/products", "/api/categories", "/api/admin/search"), _catalog_patterns),
    InvalidationRule(("/api/users", "/api/profile"), _user_patterns),
    InvalidationRule(("/api/orders",), _order_patterns),
)


class InvalidationCoordinator:
    """
    Evicts cached reads after writes.

    Deletions run on a small worker pool so the write response is never held
    back by cache bookkeeping. Failures are logged and dropped; TTL bounds how
    long a missed eviction can serve stale data.
    """

    def __init__(
        self,
        cache: CacheService,
        rules: Sequence[InvalidationRule] = DEFAULT_INVALIDATION_RULES,
        workers: int = INVALIDATION_WORKERS,
    ):
        self.cache = cache
        self.rules = tuple(rules)
        self.workers = workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def patterns_for(self, path: str, caller_id: Optional[str] = None) -> List[str]:
        patterns: List[str] = []
        for rule in self.rules:
            if rule.matches(path):
                for pattern in rule.patterns(caller_id):
                    if pattern not in patterns:
                        patterns.append(pattern)
        return patterns

    def dispatch(self, path: str, caller_id: Optional[str] = None) -> List[Future]:
        """Queue eviction for every namespace a write to `path` can make stale."""
        futures = []
        for pattern in self.patterns_for(path, caller_id):
            futures.append(self.submit(pattern))
        return futures

    def submit(self, pattern: str) -> Future:
        with self._lock:
            # Started on first use so importing the app spawns no threads
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="cache-invalidation"
                )
            future = self._executor.submit(self._invalidate, pattern)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued evictions. Returns False if some are still running after timeout."""
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _invalidate(self, pattern: str) -> int:
        try:
            return self.cache.delete_pattern(pattern)
        except Exception as e:
            logger.error(
                f"Cache invalidation failed for '{pattern}': {e}",
                extra={"event": "cache_invalidation_failed", "pattern": pattern},
            )
            return 0


class CacheInvalidationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, coordinator: InvalidationCoordinator):
        super().__init__(app)
        self.coordinator = coordinator

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Only successful writes invalidate
        if request.method not in SAFE_METHODS and 200 <= response.status_code < 300:
            self.coordinator.dispatch(request.url.path, get_caller_identity(request))

        return response
