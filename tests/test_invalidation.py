import logging

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from jose import jwt

from config import ALGORITHM, SECRET_KEY
from middleware.invalidation import CacheInvalidationMiddleware, InvalidationCoordinator


@pytest.fixture
def coordinator(cache_service):
    coordinator = InvalidationCoordinator(cache_service, workers=1)
    yield coordinator
    coordinator.shutdown()


def seed(fake_redis, *keys):
    for key in keys:
        fake_redis.setex(key, 300, "{}")


class TestPatterns:
    def test_catalog_write_patterns(self, coordinator):
        patterns = coordinator.patterns_for("/api/products/prod-1")
        assert patterns == [
            "cache:search:*",
            "cache:public:/api/products*",
            "cache:public:/api/categories*",
        ]

    def test_category_and_reindex_writes_hit_catalog(self, coordinator):
        assert "cache:search:*" in coordinator.patterns_for("/api/categories/cat-1")
        assert "cache:search:*" in coordinator.patterns_for("/api/admin/search/reindex")

    def test_user_write_is_scoped_to_caller(self, coordinator):
        assert coordinator.patterns_for("/api/users/me", "user-1") == ["cache:user:user-1:*"]

    def test_anonymous_user_write_has_nothing_to_evict(self, coordinator):
        assert coordinator.patterns_for("/api/users/me") == []

    def test_order_write(self, coordinator):
        assert coordinator.patterns_for("/api/orders", "user-1") == [
            "cache:user:user-1:/api/orders*",
            "cache:user:user-1:/api/users/orders*",
        ]

    def test_unrelated_path(self, coordinator):
        assert coordinator.patterns_for("/api/newsletter") == []


class TestCoordinator:
    def test_dispatch_evicts_matching_keys(self, coordinator, fake_redis):
        seed(
            fake_redis,
            "cache:search:abc",
            "cache:public:/api/products:",
            "cache:public:/api/products/prod-1:",
            "cache:public:/api/categories:",
            "cache:user:user-1:/api/users/me:",
        )

        coordinator.dispatch("/api/products")
        assert coordinator.flush(timeout=5)

        assert set(fake_redis.store) == {"cache:user:user-1:/api/users/me:"}

    def test_user_dispatch_leaves_other_callers(self, coordinator, fake_redis):
        seed(fake_redis, "cache:user:user-1:/api/users/me:", "cache:user:user-2:/api/users/me:")

        coordinator.dispatch("/api/users/me", "user-1")
        coordinator.flush(timeout=5)

        assert set(fake_redis.store) == {"cache:user:user-2:/api/users/me:"}

    def test_failure_is_logged_not_raised(self, coordinator, fake_redis, caplog):
        fake_redis.down = True

        with caplog.at_level(logging.ERROR, logger="middleware.invalidation"):
            futures = coordinator.dispatch("/api/products")
            coordinator.flush(timeout=5)

        assert all(f.result() == 0 for f in futures)
        failures = [r for r in caplog.records if getattr(r, "event", None) == "cache_invalidation_failed"]
        assert len(failures) == 3


class TestMiddleware:
    @pytest.fixture
    def http(self, coordinator):
        app = FastAPI()
        app.add_middleware(CacheInvalidationMiddleware, coordinator=coordinator)

        @app.post("/api/products")
        def create():
            return {"ok": True}

        @app.post("/api/products/broken")
        def broken():
            raise HTTPException(status_code=400, detail="invalid")

        @app.put("/api/users/me")
        def update_me():
            return {"ok": True}

        @app.get("/api/products")
        def read():
            return {"ok": True}

        return TestClient(app)

    def test_successful_write_invalidates(self, http, coordinator, fake_redis):
        seed(fake_redis, "cache:public:/api/products:")
        assert http.post("/api/products").status_code == 200
        coordinator.flush(timeout=5)
        assert fake_redis.store == {}

    def test_failed_write_does_not_invalidate(self, http, coordinator, fake_redis):
        seed(fake_redis, "cache:public:/api/products:")
        assert http.post("/api/products/broken").status_code == 400
        coordinator.flush(timeout=5)
        assert "cache:public:/api/products:" in fake_redis.store

    def test_reads_do_not_invalidate(self, http, coordinator, fake_redis):
        seed(fake_redis, "cache:public:/api/products:")
        http.get("/api/products")
        coordinator.flush(timeout=5)
        assert "cache:public:/api/products:" in fake_redis.store

    def test_user_write_uses_token_identity(self, http, coordinator, fake_redis):
        seed(fake_redis, "cache:user:7:/api/users/me:", "cache:user:8:/api/users/me:")
        token = jwt.encode({"id": 7}, SECRET_KEY, algorithm=ALGORITHM)

        http.put("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        coordinator.flush(timeout=5)

        assert set(fake_redis.store) == {"cache:user:8:/api/users/me:"}

    def test_write_succeeds_during_outage(self, http, coordinator, fake_redis):
        fake_redis.down = True
        assert http.post("/api/products").status_code == 200
        coordinator.flush(timeout=5)


def test_caller_id_wildcards_match_only_that_caller(coordinator, fake_redis):
    seed(fake_redis, "cache:user:user-*:/api/users/me:", "cache:user:user-1:/api/users/me:")

    coordinator.dispatch("/api/users/me", "user-*")
    coordinator.flush(timeout=5)

    assert set(fake_redis.store) == {"cache:user:user-1:/api/users/me:"}


def test_building_the_app_starts_no_workers_or_connections(app_factory, fake_redis):
    app = app_factory()

    assert app.state.invalidation._executor is None
    assert fake_redis.calls == []

    with TestClient(app):
        assert fake_redis.calls == ["ping"]
        assert app.state.cache.available is True
