"""
Metrics recalculation for a workspace.

Pulls subscription and customer data from the workspace's connected Stripe
account, computes the dashboard metrics and appends one snapshot per metric
for the current UTC day.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import time
from typing import Any, Callable
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from metricspulse.apps.metrics.services.calculations import (
    active_customers_from_subscriptions,
    calculate_active_customers,
    calculate_churn_rate,
    calculate_ltv,
    calculate_mrr,
)
from metricspulse.core.config import metrics_logger, settings
from metricspulse.core.db import AsyncSessionLocal
from metricspulse.core.db.crud import connection_db, metric_snapshot_db
from metricspulse.core.db.models import MetricSnapshot
from metricspulse.core.enums import MetricName
from metricspulse.core.exceptions.types import AppException, NotConnectedException
from metricspulse.core.services.payment.stripe import StripeClient


@dataclass
class ProviderData:
    """Raw provider objects fetched for one recalculation."""

    active_subscriptions: list[dict[str, Any]] | None = None
    trialing_subscriptions: list[dict[str, Any]] | None = None
    customers: list[dict[str, Any]] | None = None
    errors: list[AppException] = field(default_factory=list)

    @property
    def subscriptions(self) -> list[dict[str, Any]] | None:
        if self.active_subscriptions is None:
            return None
        return self.active_subscriptions + (self.trialing_subscriptions or [])


class MetricsRecalculator:
    """
    Computes and stores metric snapshots for a workspace.

    Snapshots are written one per metric, each in its own transaction. A
    snapshot that already exists for the current UTC day is kept and
    returned in place of the new value.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        stripe_client_factory: Callable[[str], StripeClient] = StripeClient,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_factory = session_factory
        self.stripe_client_factory = stripe_client_factory
        self.clock = clock

    async def recalculate(self, workspace_id: UUID) -> list[MetricSnapshot]:
        """
        Recalculate and persist the workspace's metrics.

        Args:
            workspace_id: Workspace to recalculate.

        Returns:
            The snapshots stored for today, one per computed metric.

        Raises:
            NotConnectedException: The workspace has no usable Stripe connection.
            ExternalServiceException: A Stripe call failed. Metrics that could
                still be derived are stored before this is raised.
            TimeoutException: A Stripe call timed out.
            DatabaseException: A storage operation failed.
        """
        started = time.monotonic()

        async with self.session_factory() as session:
            async with session.begin():
                connection = await connection_db.get_for_workspace(
                    session, workspace_id
                )

        if connection is None or not connection.has_usable_token:
            metrics_logger.warning(
                f"Recalculation skipped: workspace={workspace_id} has no usable Stripe connection"
            )
            raise NotConnectedException()

        data = await self.fetch_provider_data(connection.access_token)  # type: ignore[arg-type]
        values = self.compute(workspace_id, data)
        snapshots = await self.persist(workspace_id, values, self.clock())

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if data.errors:
            first_error = data.errors[0]
            metrics_logger.error(
                f"Recalculation incomplete: workspace={workspace_id} stored={len(snapshots)} "
                f"errors={len(data.errors)} first_error={type(first_error).__name__}: {first_error} "
                f"processing_time_ms={elapsed_ms}"
            )
            raise first_error

        metrics_logger.info(
            f"Recalculation complete: workspace={workspace_id} metrics={len(snapshots)} "
            f"processing_time_ms={elapsed_ms}"
        )
        return snapshots

    async def fetch_provider_data(self, access_token: str) -> ProviderData:
        """
        Fetch subscriptions and customers, collecting failures instead of
        stopping at the first one.
        """
        data = ProviderData()
        subscription_limit = settings.METRICS_SUBSCRIPTION_LIMIT

        async with self.stripe_client_factory(access_token) as client:
            try:
                data.active_subscriptions = await client.list_subscriptions(
                    "active", limit=subscription_limit
                )
                remaining = subscription_limit - len(data.active_subscriptions)
                data.trialing_subscriptions = (
                    await client.list_subscriptions("trialing", limit=remaining)
                    if remaining > 0
                    else []
                )
            except AppException as e:
                metrics_logger.error(f"Failed to fetch Stripe subscriptions: {e}")
                data.errors.append(e)

            try:
                data.customers = await client.list_customers(
                    limit=settings.METRICS_CUSTOMER_LIMIT
                )
            except AppException as e:
                metrics_logger.error(f"Failed to fetch Stripe customers: {e}")
                data.errors.append(e)

        return data

    def compute(self, workspace_id: UUID, data: ProviderData) -> dict[MetricName, Decimal]:
        """
        Compute every metric derivable from ``data``.

        A metric whose inputs are malformed is stored as 0.
        """
        values: dict[MetricName, Decimal] = {}
        subscriptions = data.subscriptions

        if data.active_subscriptions is not None:
            values[MetricName.MRR] = self._safe(
                workspace_id,
                MetricName.MRR,
                lambda: calculate_mrr(data.active_subscriptions or []),
            )

        active_customers: int | None = None
        if data.customers is not None:
            active_customers = int(
                self._safe(
                    workspace_id,
                    MetricName.ACTIVE_CUSTOMERS,
                    lambda: Decimal(calculate_active_customers(data.customers or [])),
                )
            )
        elif subscriptions is not None:
            metrics_logger.warning(
                f"Deriving active customers from subscriptions: workspace={workspace_id}"
            )
            active_customers = int(
                self._safe(
                    workspace_id,
                    MetricName.ACTIVE_CUSTOMERS,
                    lambda: Decimal(active_customers_from_subscriptions(subscriptions)),
                )
            )

        if active_customers is not None:
            churn_rate = self._safe(
                workspace_id,
                MetricName.CHURN_RATE,
                lambda: calculate_churn_rate(
                    active_customers, settings.CHURN_BASELINE_RATE
                ),
            )
            values[MetricName.CHURN_RATE] = churn_rate
            if MetricName.MRR in values:
                mrr = values[MetricName.MRR]
                values[MetricName.LTV] = self._safe(
                    workspace_id,
                    MetricName.LTV,
                    lambda: calculate_ltv(mrr, churn_rate),
                )
            values[MetricName.ACTIVE_CUSTOMERS] = Decimal(active_customers)

        return values

    @staticmethod
    def _safe(
        workspace_id: UUID,
        metric_name: MetricName,
        calculation: Callable[[], Decimal],
    ) -> Decimal:
        try:
            return calculation()
        except (ValidationError, ArithmeticError, TypeError, ValueError) as e:
            metrics_logger.error(
                f"Failed to calculate {metric_name.value}: workspace={workspace_id} "
                f"{type(e).__name__}: {e}; storing 0"
            )
            return Decimal(0)

    async def persist(
        self,
        workspace_id: UUID,
        values: dict[MetricName, Decimal],
        recorded_at: datetime,
    ) -> list[MetricSnapshot]:
        snapshots: list[MetricSnapshot] = []
        for metric_name, value in values.items():
            async with self.session_factory() as session:
                async with session.begin():
                    snapshot, created = await metric_snapshot_db.record(
                        session,
                        workspace_id=workspace_id,
                        metric_name=metric_name,
                        value=value,
                        recorded_at=recorded_at,
                        commit_self=False,
                    )
            if not created:
                metrics_logger.info(
                    f"Snapshot already recorded today: workspace={workspace_id} "
                    f"metric={metric_name.value}; keeping existing value"
                )
            snapshots.append(snapshot)
        return snapshots


metrics_recalculator = MetricsRecalculator()


__all__ = ["MetricsRecalculator", "ProviderData", "metrics_recalculator"]
