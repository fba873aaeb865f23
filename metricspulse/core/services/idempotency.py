"""
Idempotency cache for inbound webhook events.

Providers redeliver events; an event id seen within the window is
acknowledged as a duplicate without running handlers again. The cache is
best-effort: a lost entry costs one extra recalculation, never correctness,
because snapshots are unique per day.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from metricspulse.core.config import Settings, webhook_logger
from metricspulse.core.services.redis_service import RedisService


class IdempotencyCache(ABC):
    """Abstract base class for webhook idempotency backends."""

    def __init__(self, window_seconds: int):
        self.window = timedelta(seconds=window_seconds)

    @abstractmethod
    async def seen(self, event_id: str, now: datetime | None = None) -> bool:
        """
        Check whether an event id was recorded within the window.

        Args:
            event_id: Provider event ID.
            now: Reference time. Defaults to the current UTC time.

        Returns:
            True if the event was already processed.
        """
        pass

    @abstractmethod
    async def record(self, event_id: str, now: datetime | None = None) -> None:
        """
        Record an event id as processed at ``now``.

        Args:
            event_id: Provider event ID.
            now: Time of processing. Defaults to the current UTC time.
        """
        pass


class MemoryIdempotencyCache(IdempotencyCache):
    """
    In-memory idempotency cache.

    Entries older than the window count as unseen. When the store grows past
    ``compaction_threshold`` entries, expired entries are evicted.

    Note:
        Data is lost on application restart and is not shared between
        processes.
    """

    def __init__(self, window_seconds: int = 24 * 3600, compaction_threshold: int = 10_000):
        super().__init__(window_seconds)
        self.compaction_threshold = compaction_threshold
        self._store: dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._store)

    async def seen(self, event_id: str, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        recorded_at = self._store.get(event_id)
        if recorded_at is None:
            return False
        if now - recorded_at >= self.window:
            del self._store[event_id]
            return False
        return True

    async def record(self, event_id: str, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self._store[event_id] = now
        if len(self._store) > self.compaction_threshold:
            self.compact(now)

    def compact(self, now: datetime) -> int:
        """
        Evict entries older than the window.

        Returns:
            Number of evicted entries.
        """
        cutoff = now - self.window
        expired = [key for key, ts in self._store.items() if ts <= cutoff]
        for key in expired:
            del self._store[key]
        webhook_logger.info(
            f"Idempotency cache compacted: evicted={len(expired)} remaining={len(self._store)}"
        )
        return len(expired)


class RedisIdempotencyCache(IdempotencyCache):
    """
    Redis-backed idempotency cache shared across processes.

    Each event id is stored under ``webhook_event:<id>`` with a TTL equal to
    the window, so Redis handles eviction. Redis failures read as "unseen".
    """

    key_prefix = "webhook_event"

    def _key(self, event_id: str) -> str:
        return f"{self.key_prefix}:{event_id}"

    async def seen(self, event_id: str, now: datetime | None = None) -> bool:
        return await RedisService.exists(self._key(event_id))

    async def record(self, event_id: str, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        stored = await RedisService.set(
            self._key(event_id),
            now.isoformat(),
            ttl=int(self.window.total_seconds()),
        )
        if not stored:
            webhook_logger.warning(
                f"Failed to record webhook event {event_id} in Redis idempotency cache"
            )


def build_idempotency_cache(settings: Settings) -> IdempotencyCache:
    """Create the idempotency cache selected by ``IDEMPOTENCY_BACKEND``."""
    if settings.IDEMPOTENCY_BACKEND == "redis":
        return RedisIdempotencyCache(settings.IDEMPOTENCY_WINDOW_SECONDS)
    return MemoryIdempotencyCache(
        settings.IDEMPOTENCY_WINDOW_SECONDS,
        settings.IDEMPOTENCY_COMPACTION_THRESHOLD,
    )


__all__ = [
    "IdempotencyCache",
    "MemoryIdempotencyCache",
    "RedisIdempotencyCache",
    "build_idempotency_cache",
]
