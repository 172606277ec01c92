"""Shared test fixtures and configuration."""

import os
import re
import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import redis

# Keep tests off real infrastructure: in-memory SQLite, no search engine, no Redis
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ELASTICSEARCH_URL"] = ""
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

from db.database import Base, SessionLocal, create_tables, engine  # noqa: E402
from models.Categories import Category  # noqa: E402
from models.Products import Product  # noqa: E402
from services.cache_service import CacheService  # noqa: E402
from services.elasticsearch_service import ElasticsearchService  # noqa: E402
from services.search_service import SearchService  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def redis_glob_to_regex(pattern: str) -> str:
    """Translate a Redis MATCH pattern, honouring backslash escapes like the server does."""
    out, i = [], 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            out.append(".*")
        elif char == "?":
            out.append(".")
        elif char == "[" and "]" in pattern[i + 1:]:
            end = pattern.index("]", i + 1)
            out.append("[" + pattern[i + 1:end].replace("\\", "\\\\") + "]")
            i = end + 1
            continue
        else:
            out.append(re.escape(char))
        i += 1
    return "".join(out)


class InMemoryRedis:
    """Dict-backed stand-in for the handful of Redis commands the cache uses."""

    def __init__(self, clock=None):
        self.clock = clock or FakeClock()
        self.store = {}
        self.calls = []
        self.down = False
        self.error_class = redis.ConnectionError
        self._lock = threading.Lock()

    def _check(self, command):
        self.calls.append(command)
        if self.down:
            raise self.error_class("Connection refused")

    def _purge(self, key):
        entry = self.store.get(key)
        if entry is not None and entry[1] is not None and entry[1] <= self.clock():
            del self.store[key]

    def ping(self):
        self._check("ping")
        return True

    def get(self, key):
        self._check("get")
        with self._lock:
            self._purge(key)
            entry = self.store.get(key)
            return entry[0] if entry else None

    def setex(self, key, ttl, value):
        self._check("setex")
        if isinstance(value, str):
            value = value.encode()
        with self._lock:
            self.store[key] = (value, self.clock() + ttl)
        return True

    def set(self, key, value):
        self._check("set")
        if isinstance(value, str):
            value = value.encode()
        with self._lock:
            self.store[key] = (value, None)
        return True

    def scan_iter(self, match="*", count=None):
        self._check("scan")
        regex = re.compile(redis_glob_to_regex(match), re.DOTALL)
        with self._lock:
            for key in list(self.store):
                self._purge(key)
            keys = [key for key in self.store if regex.fullmatch(key)]
        return iter(keys)

    def delete(self, *keys):
        self._check("delete")
        with self._lock:
            return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return InMemoryRedis(clock)


@pytest.fixture
def cache_service(fake_redis, clock):
    return CacheService(client=fake_redis, clock=clock)


@pytest.fixture
def db_tables():
    create_tables(engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(db_tables):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def catalog(db_session):
    """
    Five active products and one inactive one.
    Default order (created_at desc): Garden Hose, Python Cookbook,
    Wireless Earbuds, Smart Watch, Smartphone X.
    """
    electronics = Category(id="cat-electronics", name="Electronics", slug="electronics")
    books = Category(id="cat-books", name="Books", slug="books")
    db_session.add_all([electronics, books])

    products = [
        Product(id="prod-1", name="Smartphone X", description="Latest smartphone with advanced features",
                price=599.99, sku="PHONE-001", inventory=10, category_id="cat-electronics",
                popularity=90.0, created_at=datetime(2024, 1, 1)),
        Product(id="prod-2", name="Smart Watch", description="Fitness tracking watch",
                price=199.0, sku="WATCH-001", inventory=0, category_id="cat-electronics",
                popularity=50.0, created_at=datetime(2024, 1, 2)),
        Product(id="prod-3", name="Wireless Earbuds", description="Noise cancelling audio",
                price=79.5, sku="AUDIO-001", inventory=25, category_id="cat-electronics",
                popularity=70.0, created_at=datetime(2024, 1, 3)),
        Product(id="prod-4", name="Python Cookbook", description="Recipes for mastering Python",
                price=45.0, sku="BOOK-001", inventory=5, category_id="cat-books",
                popularity=10.0, created_at=datetime(2024, 1, 4)),
        Product(id="prod-5", name="Retired Phone", description="Discontinued smartphone",
                price=99.0, sku="PHONE-000", inventory=3, category_id="cat-electronics",
                is_active=False, created_at=datetime(2024, 1, 5)),
        Product(id="prod-6", name="Garden Hose", description="50ft flexible hose",
                price=25.0, sku="GARDEN-001", inventory=0,
                popularity=5.0, created_at=datetime(2024, 1, 6)),
    ]
    db_session.add_all(products)
    db_session.commit()
    return products


@pytest.fixture
def fallback_service(db_tables):
    return SearchService(SessionLocal)


@pytest.fixture
def es_client():
    client = MagicMock(name="Elasticsearch")
    client.ping.return_value = True
    client.indices.exists.return_value = True
    return client


@pytest.fixture
def engine_service(db_tables, es_client):
    return SearchService(SessionLocal, ElasticsearchService(es_client, index_name="products"))


@pytest.fixture
def app_factory(cache_service, db_tables):
    from main import create_app

    def build(search_service=None, **kwargs):
        return create_app(
            session_factory=SessionLocal,
            cache=cache_service,
            search_service=search_service or SearchService(SessionLocal),
            **kwargs,
        )

    return build


@pytest.fixture
def client(app_factory, catalog):
    from fastapi.testclient import TestClient

    app = app_factory()
    with TestClient(app) as test_client:
        yield test_client
