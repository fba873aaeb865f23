from metricspulse.apps.metrics.services.event_router import (
    EVENT_ROUTES,
    EventRoute,
    decode,
    route,
)
from metricspulse.apps.metrics.services.recalculator import (
    MetricsRecalculator,
    metrics_recalculator,
)
from metricspulse.apps.metrics.services.webhook_processor import WebhookProcessor

__all__ = [
    "EVENT_ROUTES",
    "EventRoute",
    "decode",
    "route",
    "MetricsRecalculator",
    "metrics_recalculator",
    "WebhookProcessor",
]
