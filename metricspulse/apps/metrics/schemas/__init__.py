from metricspulse.apps.metrics.schemas.events import (
    CustomerEvent,
    EventEnvelope,
    InvoiceEvent,
    PriceEvent,
    SubscriptionEvent,
    TypedEvent,
)
from metricspulse.apps.metrics.schemas.metrics import (
    DateRange,
    MetricSnapshotResponse,
    MetricsListMetadata,
    MetricsListResponse,
    RecalculationMetadata,
    RecalculationResponse,
    RecalculationThrottledResponse,
)

__all__ = [
    "CustomerEvent",
    "EventEnvelope",
    "InvoiceEvent",
    "PriceEvent",
    "SubscriptionEvent",
    "TypedEvent",
    "DateRange",
    "MetricSnapshotResponse",
    "MetricsListMetadata",
    "MetricsListResponse",
    "RecalculationMetadata",
    "RecalculationResponse",
    "RecalculationThrottledResponse",
]
