from metricspulse.core.services.idempotency import (
    IdempotencyCache,
    MemoryIdempotencyCache,
    RedisIdempotencyCache,
    build_idempotency_cache,
)
from metricspulse.core.services.redis_service import RedisService
from metricspulse.core.services.retry import (
    RetryController,
    RetryPolicy,
    exponential_backoff,
    is_retryable_error,
)
from metricspulse.core.services.throttle import (
    MemoryRecalculationThrottle,
    RecalculationThrottle,
    RedisRecalculationThrottle,
    build_recalculation_throttle,
)

__all__ = [
    "IdempotencyCache",
    "MemoryIdempotencyCache",
    "RedisIdempotencyCache",
    "build_idempotency_cache",
    "RedisService",
    "RetryController",
    "RetryPolicy",
    "exponential_backoff",
    "is_retryable_error",
    "MemoryRecalculationThrottle",
    "RecalculationThrottle",
    "RedisRecalculationThrottle",
    "build_recalculation_throttle",
]
