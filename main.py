from contextlib import asynccontextmanager
from typing import Callable, Optional, Sequence
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from config import LOG_LEVEL
from db.database import SessionLocal, create_tables
from middleware.cache import DEFAULT_CACHE_RULES, CacheRule, ResponseCacheMiddleware
from middleware.invalidation import (
    DEFAULT_INVALIDATION_RULES,
    CacheInvalidationMiddleware,
    InvalidationCoordinator,
    InvalidationRule,
)
from routes import category, products, search
from services.cache_service import CacheService
from services.search_service import SearchService

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def create_app(
    session_factory: Callable[[], Session] = SessionLocal,
    cache: Optional[CacheService] = None,
    search_service: Optional[SearchService] = None,
    cache_rules: Sequence[CacheRule] = DEFAULT_CACHE_RULES,
    invalidation_rules: Sequence[InvalidationRule] = DEFAULT_INVALIDATION_RULES,
) -> FastAPI:
    cache = cache or CacheService()
    coordinator = InvalidationCoordinator(cache, invalidation_rules)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_tables()
        await run_in_threadpool(cache.ready)
        if app.state.search_service is None:
            # Probed once; an unreachable engine means database search until restart
            app.state.search_service = SearchService.from_config(session_factory)
        logger.info(f"Catalog search backend: {app.state.search_service.engine}")
        yield
        coordinator.shutdown()

    app = FastAPI(
        title="Catalog Read-Path API",
        description="""
        Product search with Elasticsearch and a database fallback,
        plus Redis response caching with write-driven invalidation.
        """,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.cache = cache
    app.state.invalidation = coordinator
    app.state.search_service = search_service

    app.add_middleware(CacheInvalidationMiddleware, coordinator=coordinator)
    app.add_middleware(ResponseCacheMiddleware, cache=cache, rules=cache_rules)
    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(search.router)
    app.include_router(products.router)
    app.include_router(category.router)
    return app


app = create_app()
