from metricspulse.core.db.models.billing_subscription import BillingSubscription
from metricspulse.core.db.models.metric_snapshot import MetricSnapshot
from metricspulse.core.db.models.workspace import Connection, Workspace

__all__ = [
    "BillingSubscription",
    "Connection",
    "MetricSnapshot",
    "Workspace",
]
