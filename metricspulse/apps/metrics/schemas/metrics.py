"""
Pydantic schemas for metrics endpoints.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, PlainSerializer, ValidationInfo, field_validator

from metricspulse.core.enums import MetricName

# Decimals are served as JSON numbers for the dashboard charts
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float)]

# Stored values carry four decimal places; currencies display two, counts none
DISPLAY_PLACES: dict[MetricName, int] = {
    MetricName.MRR: 2,
    MetricName.LTV: 2,
    MetricName.CAC: 2,
    MetricName.CHURN_RATE: 4,
    MetricName.CONVERSION_RATE: 4,
    MetricName.NET_REVENUE_RETENTION: 4,
    MetricName.ACTIVE_CUSTOMERS: 0,
}


def quantize_metric(metric_name: MetricName, value: Decimal) -> Decimal:
    places = DISPLAY_PLACES.get(metric_name, 4)
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


class MetricSnapshotResponse(BaseModel):
    """Schema for one stored metric value."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "workspace_id": "6a1f2c4e-0c5b-4d8e-9a3f-2b7c1d9e8f00",
                "metric_name": "mrr",
                "value": 20.0,
                "recorded_at": "2026-01-15T02:00:00Z",
            }
        },
    )

    id: UUID
    workspace_id: UUID
    metric_name: MetricName
    value: JsonDecimal
    recorded_at: datetime

    @field_validator("value")
    @classmethod
    def round_for_display(cls, value: Decimal, info: ValidationInfo) -> Decimal:
        metric_name = info.data.get("metric_name")
        if metric_name is None:
            return value
        return quantize_metric(metric_name, value)


class DateRange(BaseModel):
    start: datetime
    end: datetime
    days: int


class MetricsListMetadata(BaseModel):
    count: int
    date_range: DateRange
    processing_time_ms: int
    workspace_id: UUID


class MetricsListResponse(BaseModel):
    """Schema for GET /api/metrics."""

    metrics: list[MetricSnapshotResponse]
    metadata: MetricsListMetadata


class RecalculationMetadata(BaseModel):
    processing_time_ms: int
    workspace_id: UUID
    calculated_at: datetime
    metric_count: int


class RecalculationResponse(BaseModel):
    """Schema for a completed recalculation."""

    success: bool = True
    metrics: list[MetricSnapshotResponse]
    metadata: RecalculationMetadata


class RecalculationThrottledResponse(BaseModel):
    """Schema returned when a recalculation ran too recently."""

    success: bool = True
    message: str = "Metrics calculated recently. Please wait before recalculating."
    last_calculated: datetime


__all__ = [
    "DISPLAY_PLACES",
    "MetricSnapshotResponse",
    "quantize_metric",
    "DateRange",
    "MetricsListMetadata",
    "MetricsListResponse",
    "RecalculationMetadata",
    "RecalculationResponse",
    "RecalculationThrottledResponse",
]
