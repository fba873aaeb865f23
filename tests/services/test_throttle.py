"""
Unit tests for the recalculation throttle.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from metricspulse.core.config import Settings
from metricspulse.core.services.throttle import (
    MemoryRecalculationThrottle,
    RedisRecalculationThrottle,
    build_recalculation_throttle,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestMemoryRecalculationThrottle:

    async def test_first_attempt_allowed(self):
        throttle = MemoryRecalculationThrottle()
        assert await throttle.acquire(uuid4(), T0) is None

    async def test_second_attempt_in_window_is_throttled(self):
        throttle = MemoryRecalculationThrottle(window_seconds=300)
        workspace_id = uuid4()
        await throttle.acquire(workspace_id, T0)

        assert await throttle.acquire(workspace_id, T0 + timedelta(minutes=4)) == T0

    async def test_attempt_after_window_allowed(self):
        throttle = MemoryRecalculationThrottle(window_seconds=300)
        workspace_id = uuid4()
        await throttle.acquire(workspace_id, T0)

        assert await throttle.acquire(workspace_id, T0 + timedelta(minutes=5)) is None

    async def test_workspaces_are_independent(self):
        throttle = MemoryRecalculationThrottle()
        await throttle.acquire(uuid4(), T0)
        assert await throttle.acquire(uuid4(), T0) is None

    async def test_release_allows_immediate_retry(self):
        throttle = MemoryRecalculationThrottle()
        workspace_id = uuid4()
        await throttle.acquire(workspace_id, T0)
        await throttle.release(workspace_id)

        assert await throttle.acquire(workspace_id, T0) is None


class TestRedisRecalculationThrottle:

    async def test_acquire_sets_key_nx(self):
        throttle = RedisRecalculationThrottle(300)
        workspace_id = uuid4()
        with patch(
            "metricspulse.core.services.throttle.RedisService.set_if_not_exists",
            new_callable=AsyncMock,
            return_value=True,
        ) as mock_set:
            assert await throttle.acquire(workspace_id, T0) is None
        mock_set.assert_awaited_once_with(
            f"recalc_throttle:{workspace_id}", T0.isoformat(), 300
        )

    async def test_existing_key_returns_previous_attempt(self):
        throttle = RedisRecalculationThrottle(300)
        previous = T0 - timedelta(minutes=1)
        with patch(
            "metricspulse.core.services.throttle.RedisService.set_if_not_exists",
            new_callable=AsyncMock,
            return_value=False,
        ), patch(
            "metricspulse.core.services.throttle.RedisService.get",
            new_callable=AsyncMock,
            return_value=previous.isoformat(),
        ):
            assert await throttle.acquire(uuid4(), T0) == previous

    async def test_release_deletes_key(self):
        throttle = RedisRecalculationThrottle(300)
        workspace_id = uuid4()
        with patch(
            "metricspulse.core.services.throttle.RedisService.delete",
            new_callable=AsyncMock,
        ) as mock_delete:
            await throttle.release(workspace_id)
        mock_delete.assert_awaited_once_with(f"recalc_throttle:{workspace_id}")


def test_build_recalculation_throttle():
    throttle = build_recalculation_throttle(Settings(RECALCULATION_THROTTLE_BACKEND="memory"))
    assert isinstance(throttle, MemoryRecalculationThrottle)
    assert throttle.window == timedelta(minutes=5)
