"""
Pytest configuration and core fixtures.

Every test gets its own in-memory SQLite database; the app's session,
idempotency cache, throttle, recalculator and retry controller are swapped
for test instances through ``app.dependency_overrides``. Stripe is served by
an ``httpx.MockTransport`` so the real client code runs end to end.
"""

import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

WEBHOOK_SECRET = "whsec_test_secret"
STRIPE_ACCOUNT_ID = "acct_test_123"
STRIPE_ACCESS_TOKEN = "sk_test_connected"


def pytest_configure(config):
    """Configure pytest with custom settings."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
    os.environ["STRIPE_WEBHOOK_SECRET"] = WEBHOOK_SECRET
    os.environ["IDEMPOTENCY_BACKEND"] = "memory"
    os.environ["RECALCULATION_THROTTLE_BACKEND"] = "memory"
    os.environ["ENABLE_SCHEDULER"] = "false"
    os.environ["SENTRY_DSN"] = ""


# ============================================================================
# Stripe API stub
# ============================================================================


class StripeStub:
    """
    Minimal Stripe list API served through ``httpx.MockTransport``.

    Attributes:
        subscriptions: Subscriptions returned per ``status`` query value.
        customers: Customers returned by ``/v1/customers``.
        failures: Status code (or exception) to answer with, per path.
        requests: Every request received.
    """

    def __init__(self):
        self.subscriptions: dict[str, list[dict[str, Any]]] = {
            "active": [],
            "trialing": [],
        }
        self.customers: list[dict[str, Any]] = []
        self.failures: dict[str, int | Exception] = {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        failure = self.failures.get(path)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(
                failure,
                json={"error": {"type": "api_error", "message": f"stub failure {failure}"}},
                headers={"Request-Id": "req_stub"},
            )

        if path == "/v1/subscriptions":
            data = self.subscriptions.get(request.url.params.get("status", ""), [])
        elif path == "/v1/customers":
            data = self.customers
        else:
            return httpx.Response(404, json={"error": {"message": "No such route"}})

        limit = int(request.url.params.get("limit", 100))
        return httpx.Response(
            200,
            json={"object": "list", "has_more": False, "data": data[:limit]},
        )

    def client_factory(self, access_token: str):
        from metricspulse.core.services.payment.stripe import StripeClient

        return StripeClient(
            access_token,
            base_url="https://stripe.test",
            transport=httpx.MockTransport(self.handler),
        )


def build_subscription(
    sub_id: str = "sub_1",
    customer: str = "cus_1",
    status: str = "active",
    unit_amount: int = 1000,
    interval: str = "month",
    quantity: int = 1,
    currency: str = "usd",
) -> dict[str, Any]:
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "current_period_end": 1767225600,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": f"si_{sub_id}",
                    "quantity": quantity,
                    "price": {
                        "id": f"price_{sub_id}",
                        "currency": currency,
                        "unit_amount": unit_amount,
                        "recurring": {"interval": interval, "interval_count": 1},
                    },
                }
            ],
        },
    }


def build_customer(
    customer_id: str = "cus_1", statuses: tuple[str, ...] = ("active",)
) -> dict[str, Any]:
    return {
        "id": customer_id,
        "object": "customer",
        "email": f"{customer_id}@example.com",
        "subscriptions": {
            "object": "list",
            "data": [
                {"id": f"sub_{customer_id}_{i}", "status": status}
                for i, status in enumerate(statuses)
            ],
        },
    }


@pytest.fixture
def stripe_stub() -> StripeStub:
    return StripeStub()


@pytest.fixture
def make_subscription():
    return build_subscription


@pytest.fixture
def make_customer():
    return build_customer


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def engine():
    from metricspulse.core.db import Base
    import metricspulse.core.db.models  # noqa: F401

    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        echo=False,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield test_engine
    finally:
        await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def workspace(session_factory):
    from metricspulse.core.db.models import Workspace

    async with session_factory.begin() as session:
        ws = Workspace(id=uuid4(), user_id=uuid4(), name="Test Workspace")
        session.add(ws)
    return ws


@pytest.fixture
async def stripe_connection(session_factory, workspace):
    from metricspulse.core.db.models import Connection
    from metricspulse.core.enums import ConnectionProvider

    async with session_factory.begin() as session:
        connection = Connection(
            id=uuid4(),
            workspace_id=workspace.id,
            provider=ConnectionProvider.STRIPE,
            access_token=STRIPE_ACCESS_TOKEN,
            provider_account_id=STRIPE_ACCOUNT_ID,
            connected_at=datetime.now(timezone.utc),
        )
        session.add(connection)
    return connection


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def idempotency_cache():
    from metricspulse.core.services.idempotency import MemoryIdempotencyCache

    return MemoryIdempotencyCache()


@pytest.fixture
def throttle():
    from metricspulse.core.services.throttle import MemoryRecalculationThrottle

    return MemoryRecalculationThrottle()


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def retry_controller(fake_sleep):
    from metricspulse.core.services.retry import (
        RetryController,
        RetryPolicy,
        exponential_backoff,
    )

    return RetryController(
        RetryPolicy(max_attempts=3, backoff=exponential_backoff(1.0), budget_seconds=30),
        sleep=fake_sleep,
    )


@pytest.fixture
def recalculator(session_factory, stripe_stub):
    from metricspulse.apps.metrics.services.recalculator import MetricsRecalculator

    return MetricsRecalculator(
        session_factory=session_factory,
        stripe_client_factory=stripe_stub.client_factory,
    )


@pytest.fixture
def webhook_processor(idempotency_cache, retry_controller, recalculator, session_factory):
    from metricspulse.apps.metrics.services.webhook_processor import WebhookProcessor

    return WebhookProcessor(
        idempotency_cache,
        retry_controller=retry_controller,
        recalculator=recalculator,
        session_factory=session_factory,
    )


# ============================================================================
# Application
# ============================================================================


@pytest.fixture
def app():
    """Create FastAPI application for testing."""
    from metricspulse.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
async def client(
    app,
    session_factory,
    idempotency_cache,
    throttle,
    recalculator,
    retry_controller,
    webhook_processor,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client wired to the per-test database and services."""
    from metricspulse.apps.metrics.routers.metrics import (
        get_metrics_recalculator,
        get_retry_controller,
    )
    from metricspulse.apps.metrics.routers.webhook import get_webhook_processor
    from metricspulse.core.dependencies import (
        get_async_session,
        get_idempotency_cache,
        get_recalculation_throttle,
    )

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_idempotency_cache] = lambda: idempotency_cache
    app.dependency_overrides[get_recalculation_throttle] = lambda: throttle
    app.dependency_overrides[get_metrics_recalculator] = lambda: recalculator
    app.dependency_overrides[get_retry_controller] = lambda: retry_controller
    app.dependency_overrides[get_webhook_processor] = lambda: webhook_processor

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(workspace) -> dict[str, str]:
    """Generate authentication headers for the workspace owner."""
    from metricspulse.core.utils import create_jwt_token

    access_token = create_jwt_token(
        data={"sub": str(workspace.user_id)},
        expires_delta=timedelta(minutes=15),
    )
    return {"Authorization": f"Bearer {access_token}"}


# ============================================================================
# Webhooks
# ============================================================================


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


@pytest.fixture
def sign_payload():
    """Build a ``Stripe-Signature`` header for a payload."""

    def _sign(
        payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None
    ) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"

    return _sign


@pytest.fixture
def make_event():
    """Build a Stripe event body."""

    def _make(
        event_type: str,
        obj: dict[str, Any],
        event_id: str | None = None,
        account: str | None = STRIPE_ACCOUNT_ID,
    ) -> dict[str, Any]:
        event: dict[str, Any] = {
            "id": event_id or f"evt_{uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "livemode": False,
            "data": {"object": obj},
        }
        if account is not None:
            event["account"] = account
        return event

    return _make


@pytest.fixture
def post_webhook(client, sign_payload):
    """Send a signed webhook delivery."""

    async def _post(
        body: dict[str, Any] | bytes,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        payload = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        request_headers = {
            "Content-Type": "application/json",
            "Stripe-Signature": sign_payload(payload),
        }
        request_headers.update(headers or {})
        return await client.post("/webhooks/stripe", content=payload, headers=request_headers)

    return _post
