"""Tests for user and cache API routes.

Each test builds its own app through the factory so cache, limiter and
coalescer state never leak between tests.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.source.in_memory import InMemoryRecordSource
from app.core.app_factory import create_app
from app.core.config import AppSettings, CacheSettings, Settings
from app.core.rate_limit import client_identity


@pytest.fixture
def app():
    return create_app(source=InMemoryRecordSource(latency_seconds=0.05))


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


class TestGetUser:

    def test_cold_then_warm_lookup(self, client: TestClient):
        first = client.get("/v1/users/1")

        assert first.status_code == 200
        body = first.json()
        assert body["source"] == "source"
        assert body["user"] == {"id": 1, "name": "John Doe", "email": "john@example.com"}
        assert client.get("/v1/cache-status").json()["size"] == 1

        second = client.get("/v1/users/1")

        assert second.status_code == 200
        assert second.json()["source"] == "cache"
        status = client.get("/v1/cache-status").json()
        assert status["hits"] == 1
        assert status["misses"] == 1
        assert status["size"] == 1

    def test_source_latency_is_reflected_in_average(self, client: TestClient):
        client.get("/v1/users/2")

        avg = client.get("/v1/cache-status").json()["avg_response_time_ms"]

        assert avg >= 45

    def test_unknown_user_returns_404(self, client: TestClient):
        response = client.get("/v1/users/999")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "user_not_found"
        assert error["message"] == "User not found"
        assert "request_id" in error

        status = client.get("/v1/cache-status").json()
        assert status["size"] == 0
        assert status["misses"] == 1

    def test_source_failure_returns_500_without_details(self, app, client: TestClient):
        async def _failing_fetch(key: str):
            raise ConnectionError("db down at 10.0.0.5")

        app.state.container.coalescer.fetch_fn = _failing_fetch

        response = client.get("/v1/users/1")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "source_fetch_failed"
        assert "details" not in error
        assert "10.0.0.5" not in response.text


class TestCreateUser:

    def test_create_caches_new_user(self, client: TestClient):
        response = client.post("/v1/users", json={"name": "Bob", "email": "bob@example.com"})

        assert response.status_code == 201
        user = response.json()["user"]
        assert user == {"id": 4, "name": "Bob", "email": "bob@example.com"}

        lookup = client.get("/v1/users/4")
        assert lookup.json()["source"] == "cache"

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Bob"},
            {"email": "bob@example.com"},
            {"name": "", "email": ""},
        ],
    )
    def test_incomplete_payload_returns_400(self, client: TestClient, payload):
        response = client.post("/v1/users", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_user_payload"
        assert client.get("/v1/cache-status").json()["size"] == 0


class TestCacheAdmin:

    def test_clear_cache_keeps_counters(self, client: TestClient):
        client.get("/v1/users/1")
        client.get("/v1/users/1")
        before = client.get("/v1/cache-status").json()

        response = client.delete("/v1/cache")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        after = client.get("/v1/cache-status").json()
        assert after["size"] == 0
        assert after["hits"] == before["hits"]
        assert after["misses"] == before["misses"]

    def test_status_on_fresh_app(self, client: TestClient):
        assert client.get("/v1/cache-status").json() == {
            "hits": 0,
            "misses": 0,
            "size": 0,
            "avg_response_time_ms": 0.0,
        }


class TestRateLimiting:

    @pytest.fixture
    def strict_client(self) -> TestClient:
        cfg = Settings(
            app=AppSettings(
                rate_limit_requests=2,
                rate_limit_burst_requests=2,
            )
        )
        return TestClient(create_app(cfg, source=InMemoryRecordSource(latency_seconds=0)))

    def test_lookup_is_throttled_with_headers(self, strict_client: TestClient):
        assert strict_client.get("/v1/users/1").status_code == 200
        assert strict_client.get("/v1/users/1").status_code == 200

        response = strict_client.get("/v1/users/1")

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "rate_limited"
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_admin_routes_share_the_same_budget(self, strict_client: TestClient):
        assert strict_client.get("/v1/users/1").status_code == 200
        assert strict_client.get("/v1/cache-status").status_code == 200

        assert strict_client.delete("/v1/cache").status_code == 429

    def test_health_is_never_throttled(self, strict_client: TestClient):
        for _ in range(10):
            assert strict_client.get("/health").status_code == 200

    def test_index_counts_against_the_budget(self, strict_client: TestClient):
        assert strict_client.get("/").status_code == 200
        assert strict_client.get("/").status_code == 200

        assert strict_client.get("/").status_code == 429
        assert strict_client.get("/v1/users/1").status_code == 429

    def test_headers_follow_app_settings(self):
        cfg = Settings(
            app=AppSettings(
                rate_limit_requests=1,
                rate_limit_burst_requests=1,
                rate_limit_include_headers=False,
            )
        )
        client = TestClient(create_app(cfg, source=InMemoryRecordSource(latency_seconds=0)))

        client.get("/v1/users/1")
        response = client.get("/v1/users/1")

        assert response.status_code == 429
        assert "Retry-After" not in response.headers
        assert "X-RateLimit-Limit" not in response.headers

    def test_identity_falls_back_to_app_default(self):
        cfg = Settings(app=AppSettings(default_client_identity="anonymous"))
        request = Mock()
        request.client = None
        request.app.state.container.settings = cfg

        assert client_identity(request) == "anonymous"

    def test_disabled_limiter_admits_everything(self):
        cfg = Settings(app=AppSettings(rate_limit_enabled=False))
        client = TestClient(create_app(cfg, source=InMemoryRecordSource(latency_seconds=0)))

        for _ in range(20):
            assert client.get("/v1/users/1").status_code == 200


class TestLifecycle:

    def test_sweeper_runs_for_the_app_lifetime(self, app):
        sweeper = app.state.container.sweeper

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert sweeper.running

        assert not sweeper.running

    def test_index_lists_endpoints(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert "GET /v1/users/{user_id}" in response.json()["endpoints"]

    def test_index_reflects_app_settings(self):
        cfg = Settings(
            app=AppSettings(rate_limit_requests=3),
            cache=CacheSettings(ttl_seconds=5, max_entries=42),
        )
        client = TestClient(create_app(cfg, source=InMemoryRecordSource(latency_seconds=0)))

        notes = client.get("/").json()["notes"]

        assert "3 requests per" in notes["rate_limiting"]
        assert "TTL = 5s" in notes["cache"]
        assert "capacity = 42" in notes["cache"]
