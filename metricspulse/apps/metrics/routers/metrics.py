"""
Dashboard metrics endpoints.
"""

from datetime import datetime, timedelta, timezone
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.apps.metrics.schemas.metrics import (
    DateRange,
    MetricSnapshotResponse,
    MetricsListMetadata,
    MetricsListResponse,
    RecalculationMetadata,
    RecalculationResponse,
    RecalculationThrottledResponse,
)
from metricspulse.apps.metrics.services.recalculator import (
    MetricsRecalculator,
    metrics_recalculator,
)
from metricspulse.core.config import metrics_logger, request_logger
from metricspulse.core.db.crud import metric_snapshot_db
from metricspulse.core.dependencies import (
    CurrentWorkspace,
    get_async_session,
    get_recalculation_throttle,
)
from metricspulse.core.enums import MetricName
from metricspulse.core.exceptions.handlers import exception_schema
from metricspulse.core.services.retry import RetryController
from metricspulse.core.services.throttle import RecalculationThrottle
from metricspulse.core.utils import ensure_utc

router = APIRouter(prefix="/api/metrics", tags=["Metrics"])

SINGLE_METRIC_LIMIT = 1000
ALL_METRICS_LIMIT = 2000


def get_metrics_recalculator() -> MetricsRecalculator:
    return metrics_recalculator


def get_retry_controller() -> RetryController:
    return RetryController()


@router.get(
    "",
    response_model=MetricsListResponse,
    summary="List metric snapshots",
    responses=exception_schema,
    description="""
## List Metric Snapshots

Returns the workspace's stored metric snapshots for the last `days` days,
oldest first.

### Query Parameters

| Parameter | Type | Required | Description |
|-----------|------|----------|-------------|
| `metric` | string | ❌ | One of `mrr`, `churn_rate`, `ltv`, `active_customers`, `cac`, `conversion_rate`, `net_revenue_retention` |
| `days` | integer | ❌ | Window size, 1-365. Defaults to 30 |

### Notes

- At most 1000 snapshots are returned for a single metric, 2000 for all metrics
""",
)
async def list_metrics(
    workspace: CurrentWorkspace,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    metric: Annotated[MetricName | None, Query()] = None,
    days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> MetricsListResponse:
    """List the workspace's metric snapshots within the window."""
    started = time.monotonic()
    end = datetime.now(timezone.utc)
    start = end - timedelta(days=days)
    request_logger.info(
        f"GET /api/metrics - workspace={workspace.id} metric={metric.value if metric else 'all'} days={days}"
    )

    async with session.begin():
        snapshots = await metric_snapshot_db.get_since(
            session,
            workspace.id,
            since=start,
            metric_name=metric,
            limit=SINGLE_METRIC_LIMIT if metric else ALL_METRICS_LIMIT,
        )

    # Newest rows win the limit; the response is chronological
    ordered = sorted(snapshots, key=lambda s: ensure_utc(s.recorded_at))
    return MetricsListResponse(
        metrics=[MetricSnapshotResponse.model_validate(s) for s in ordered],
        metadata=MetricsListMetadata(
            count=len(ordered),
            date_range=DateRange(start=start, end=end, days=days),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            workspace_id=workspace.id,
        ),
    )


@router.post(
    "/recalculate",
    response_model=RecalculationResponse | RecalculationThrottledResponse,
    summary="Recalculate metrics from Stripe",
    responses=exception_schema,
    description="""
## Recalculate Metrics

Recomputes MRR, churn rate, LTV and active customers from the connected
Stripe account and stores today's snapshots.

### Throttling

One recalculation per workspace every 5 minutes. A request inside the window
returns `success: true` with `last_calculated` and does not recompute.

### Errors

| Status | Code | Meaning |
|--------|------|---------|
| 400 | `STRIPE_NOT_CONNECTED` | No Stripe connection for the workspace |
| 408 | `TIMEOUT` | Recalculation exceeded its time budget |
| 502 | `EXTERNAL_SERVICE_ERROR` | Stripe kept failing |
""",
)
async def recalculate_metrics(
    workspace: CurrentWorkspace,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    throttle: Annotated[RecalculationThrottle, Depends(get_recalculation_throttle)],
    recalculator: Annotated[MetricsRecalculator, Depends(get_metrics_recalculator)],
    retry_controller: Annotated[RetryController, Depends(get_retry_controller)],
) -> RecalculationResponse | RecalculationThrottledResponse:
    """Recalculate the workspace's metrics unless it was done recently."""
    started = time.monotonic()
    now = datetime.now(timezone.utc)
    request_logger.info(f"POST /api/metrics/recalculate - workspace={workspace.id}")

    async with session.begin():
        latest = await metric_snapshot_db.get_latest(session, workspace.id)
    if latest is not None:
        last_recorded = ensure_utc(latest.recorded_at)
        if now - last_recorded < throttle.window:
            metrics_logger.info(
                f"Recalculation throttled by recent snapshot: workspace={workspace.id}"
            )
            return RecalculationThrottledResponse(last_calculated=last_recorded)

    previous_attempt = await throttle.acquire(workspace.id, now)
    if previous_attempt is not None:
        return RecalculationThrottledResponse(last_calculated=previous_attempt)

    try:
        snapshots = await retry_controller.execute(
            lambda: recalculator.recalculate(workspace.id),
            operation_name="recalculate_metrics",
            context={"workspace_id": workspace.id},
        )
    except Exception:
        await throttle.release(workspace.id)
        raise

    processing_time_ms = int((time.monotonic() - started) * 1000)
    metrics_logger.info(
        f"Recalculation served: workspace={workspace.id} metrics={len(snapshots)} "
        f"processing_time_ms={processing_time_ms}"
    )
    return RecalculationResponse(
        metrics=[MetricSnapshotResponse.model_validate(s) for s in snapshots],
        metadata=RecalculationMetadata(
            processing_time_ms=processing_time_ms,
            workspace_id=workspace.id,
            calculated_at=now,
            metric_count=len(snapshots),
        ),
    )


__all__ = ["router", "get_metrics_recalculator", "get_retry_controller"]
