"""
Routers for the metrics app.
"""

from metricspulse.apps.metrics.routers.metrics import router as metrics_router
from metricspulse.apps.metrics.routers.webhook import router as webhook_router

__all__ = ["metrics_router", "webhook_router"]
