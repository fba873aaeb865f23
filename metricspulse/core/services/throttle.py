"""
Per-workspace throttle for on-demand metric recalculation.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from uuid import UUID

from metricspulse.core.config import Settings, metrics_logger
from metricspulse.core.services.redis_service import RedisService


class RecalculationThrottle(ABC):
    """
    Allows at most one recalculation attempt per workspace per window.
    """

    def __init__(self, window_seconds: int):
        self.window = timedelta(seconds=window_seconds)

    @abstractmethod
    async def acquire(
        self, workspace_id: UUID, now: datetime | None = None
    ) -> datetime | None:
        """
        Try to start a recalculation for the workspace.

        Returns:
            None if the attempt may proceed (and is now recorded), otherwise the
            timestamp of the previous attempt inside the window.
        """
        pass

    @abstractmethod
    async def release(self, workspace_id: UUID) -> None:
        """Forget the last attempt so the workspace may retry immediately."""
        pass


class MemoryRecalculationThrottle(RecalculationThrottle):
    """In-memory throttle. Not shared between processes."""

    def __init__(self, window_seconds: int = 300):
        super().__init__(window_seconds)
        self._last_attempt: dict[UUID, datetime] = {}

    async def acquire(
        self, workspace_id: UUID, now: datetime | None = None
    ) -> datetime | None:
        now = now or datetime.now(timezone.utc)
        previous = self._last_attempt.get(workspace_id)
        if previous is not None and now - previous < self.window:
            metrics_logger.info(
                f"Recalculation throttled: workspace={workspace_id} last_attempt={previous.isoformat()}"
            )
            return previous
        self._last_attempt[workspace_id] = now
        return None

    async def release(self, workspace_id: UUID) -> None:
        self._last_attempt.pop(workspace_id, None)


class RedisRecalculationThrottle(RecalculationThrottle):
    """
    Redis throttle using ``SET NX EX`` on ``recalc_throttle:<workspace_id>``.

    If Redis is unavailable the attempt is allowed.
    """

    key_prefix = "recalc_throttle"

    def _key(self, workspace_id: UUID) -> str:
        return f"{self.key_prefix}:{workspace_id}"

    async def acquire(
        self, workspace_id: UUID, now: datetime | None = None
    ) -> datetime | None:
        now = now or datetime.now(timezone.utc)
        key = self._key(workspace_id)
        ttl = int(self.window.total_seconds())
        if await RedisService.set_if_not_exists(key, now.isoformat(), ttl):
            return None

        stored = await RedisService.get(key)
        if stored is None:
            return None
        try:
            previous = datetime.fromisoformat(stored)
        except ValueError:
            metrics_logger.warning(f"Discarding malformed throttle value for {key}: {stored!r}")
            await RedisService.set(key, now.isoformat(), ttl=ttl)
            return None
        metrics_logger.info(
            f"Recalculation throttled: workspace={workspace_id} last_attempt={previous.isoformat()}"
        )
        return previous

    async def release(self, workspace_id: UUID) -> None:
        await RedisService.delete(self._key(workspace_id))


def build_recalculation_throttle(settings: Settings) -> RecalculationThrottle:
    """Create the throttle selected by ``RECALCULATION_THROTTLE_BACKEND``."""
    if settings.RECALCULATION_THROTTLE_BACKEND == "redis":
        return RedisRecalculationThrottle(settings.RECALCULATION_THROTTLE_SECONDS)
    return MemoryRecalculationThrottle(settings.RECALCULATION_THROTTLE_SECONDS)


__all__ = [
    "RecalculationThrottle",
    "MemoryRecalculationThrottle",
    "RedisRecalculationThrottle",
    "build_recalculation_throttle",
]
