from metricspulse.core.db.crud.base import BaseDB
from metricspulse.core.db.crud.billing_subscription import BillingSubscriptionDB
from metricspulse.core.db.crud.metric_snapshot import MetricSnapshotDB
from metricspulse.core.db.crud.workspace import ConnectionDB, WorkspaceDB

# Global CRUD instances - use these instead of creating new instances
workspace_db = WorkspaceDB()
connection_db = ConnectionDB()
metric_snapshot_db = MetricSnapshotDB()
billing_subscription_db = BillingSubscriptionDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "BillingSubscriptionDB",
    "ConnectionDB",
    "MetricSnapshotDB",
    "WorkspaceDB",
    # Global instances (for actual usage)
    "billing_subscription_db",
    "connection_db",
    "metric_snapshot_db",
    "workspace_db",
]
