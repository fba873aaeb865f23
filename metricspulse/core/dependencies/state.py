"""
Dependencies exposing process-scoped state created at startup.

The objects live on ``app.state`` (set in ``metricspulse.main``); tests
replace them through ``app.dependency_overrides``.
"""

from fastapi import Request

from metricspulse.core.services.idempotency import IdempotencyCache
from metricspulse.core.services.throttle import RecalculationThrottle


def get_idempotency_cache(request: Request) -> IdempotencyCache:
    return request.app.state.idempotency_cache


def get_recalculation_throttle(request: Request) -> RecalculationThrottle:
    return request.app.state.recalculation_throttle
