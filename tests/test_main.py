"""
Tests for the application entrypoint: root, health check and wiring.
"""

from unittest.mock import AsyncMock, patch

from metricspulse.core.services.idempotency import IdempotencyCache
from metricspulse.core.services.throttle import RecalculationThrottle


class TestRoot:

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"].startswith("Welcome to")
        assert body["documentations"]["swagger"].endswith("/docs")


class TestHealthCheck:

    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["checks"] == {"database": "ok"}

    async def test_redis_down_is_degraded(self, client):
        with patch("metricspulse.main.uses_redis", return_value=True), patch(
            "metricspulse.main.RedisService.ping",
            new_callable=AsyncMock,
            return_value=False,
        ):
            response = await client.get("/health")

        assert response.status_code == 503
        details = response.json()["details"]
        assert details["status"] == "degraded"
        assert details["checks"]["redis"] == "unhealthy"
        assert details["checks"]["database"] == "ok"


class TestAppState:

    def test_process_state_is_initialised(self, app):
        assert isinstance(app.state.idempotency_cache, IdempotencyCache)
        assert isinstance(app.state.recalculation_throttle, RecalculationThrottle)

    def test_routes_registered(self, app):
        paths = {route.path for route in app.routes}
        assert {"/webhooks/stripe", "/api/metrics", "/api/metrics/recalculate", "/health"} <= paths
