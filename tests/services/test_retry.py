"""
Unit tests for the retry controller.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from metricspulse.core.exceptions.types import (
    AuthenticationException,
    DatabaseException,
    ExternalServiceException,
    NotConnectedException,
    RetryExhaustedException,
    TimeoutException,
    ValidationException,
)
from metricspulse.core.services.retry import (
    RetryController,
    RetryPolicy,
    exponential_backoff,
    is_retryable_error,
)


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds


def flaky(failures: list[BaseException], result="ok"):
    """Operation that raises each error in ``failures`` once, then returns ``result``."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if failures:
            raise failures.pop(0)
        return result

    return operation, calls


# ============================================================================
# Tests for classification
# ============================================================================


class TestIsRetryableError:

    @pytest.mark.parametrize(
        "error",
        [
            ExternalServiceException("5xx", retryable=True),
            TimeoutException(),
            DatabaseException(),
        ],
    )
    def test_transient_errors(self, error):
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ExternalServiceException("401", status_code=401, retryable=False),
            AuthenticationException(),
            ValidationException(),
            NotConnectedException(),
            RuntimeError("bug"),
        ],
    )
    def test_permanent_errors(self, error):
        assert is_retryable_error(error) is False


class TestExponentialBackoff:

    def test_doubles_each_attempt(self):
        backoff = exponential_backoff(1.0)
        assert [backoff(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_policy_from_settings(self):
        policy = RetryPolicy.from_settings()
        assert policy.max_attempts == 3
        assert policy.budget_seconds == 30.0
        assert policy.backoff(0) == 1.0


# ============================================================================
# Tests for RetryController.execute
# ============================================================================


class TestRetryController:

    async def test_success_on_first_attempt(self):
        sleep = AsyncMock()
        controller = RetryController(RetryPolicy(), sleep=sleep)
        operation, calls = flaky([])

        result = await controller.execute(operation, operation_name="op")

        assert result == "ok"
        assert calls["count"] == 1
        sleep.assert_not_awaited()

    async def test_two_transient_failures_then_success(self):
        clock = FakeClock()
        controller = RetryController(RetryPolicy(), sleep=clock.sleep, clock=clock)
        operation, calls = flaky(
            [ExternalServiceException("503"), ExternalServiceException("503")]
        )

        result = await controller.execute(
            operation, operation_name="op", context={"workspace_id": "w1"}
        )

        assert result == "ok"
        assert calls["count"] == 3
        assert clock.now == pytest.approx(3.0)  # 1s then 2s

    async def test_exhausts_after_max_attempts(self):
        sleep = AsyncMock()
        controller = RetryController(RetryPolicy(max_attempts=3), sleep=sleep)
        errors = [ExternalServiceException("503") for _ in range(5)]
        operation, calls = flaky(errors)

        with pytest.raises(RetryExhaustedException) as exc_info:
            await controller.execute(operation, operation_name="op")

        assert calls["count"] == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ExternalServiceException)
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_non_retryable_fails_fast(self):
        sleep = AsyncMock()
        controller = RetryController(RetryPolicy(), sleep=sleep)
        operation, calls = flaky([NotConnectedException()])

        with pytest.raises(NotConnectedException):
            await controller.execute(operation, operation_name="op")

        assert calls["count"] == 1
        sleep.assert_not_awaited()

    async def test_unexpected_error_is_not_retried(self):
        controller = RetryController(RetryPolicy(), sleep=AsyncMock())
        operation, calls = flaky([KeyError("bug")])

        with pytest.raises(KeyError):
            await controller.execute(operation, operation_name="op")
        assert calls["count"] == 1

    async def test_backoff_beyond_budget_raises_timeout(self):
        clock = FakeClock()
        controller = RetryController(
            RetryPolicy(max_attempts=3, budget_seconds=2.5),
            sleep=clock.sleep,
            clock=clock,
        )
        operation, calls = flaky(
            [ExternalServiceException("503"), ExternalServiceException("503")]
        )

        with pytest.raises(TimeoutException):
            await controller.execute(operation, operation_name="op")

        # First backoff (1s) fits, the second (2s) would end at 3s > 2.5s
        assert calls["count"] == 2
        assert clock.now == pytest.approx(1.0)

    async def test_attempt_cut_off_at_budget(self):
        controller = RetryController(RetryPolicy(budget_seconds=0.05))

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(TimeoutException):
            await controller.execute(slow, operation_name="slow")
