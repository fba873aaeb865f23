"""
Shared dependencies for FastAPI endpoints.

"""

from metricspulse.core.dependencies.auth import (
    CurrentUserId,
    CurrentWorkspace,
    bearer_scheme,
    get_current_user_id,
    get_current_workspace,
)
from metricspulse.core.dependencies.db import get_async_session
from metricspulse.core.dependencies.state import (
    get_idempotency_cache,
    get_recalculation_throttle,
)

__all__ = [
    "CurrentUserId",
    "CurrentWorkspace",
    "bearer_scheme",
    "get_current_user_id",
    "get_current_workspace",
    "get_async_session",
    "get_idempotency_cache",
    "get_recalculation_throttle",
]
