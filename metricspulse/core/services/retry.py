"""
Retry controller with exponential backoff and a wall-clock budget.

All retrying in the application goes through ``RetryController``: provider
clients classify their failures into the exception taxonomy but never retry
on their own.
"""

import asyncio
from dataclasses import dataclass, field
import time
from typing import Any, Awaitable, Callable, TypeVar

from metricspulse.core.config import retry_logger, settings
from metricspulse.core.exceptions.types import (
    DatabaseException,
    ExternalServiceException,
    RetryExhaustedException,
    TimeoutException,
)

T = TypeVar("T")


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failure is transient.

    Retryable: provider errors flagged retryable (5xx, 429, network),
    timeouts, and database errors. Everything else (authentication,
    validation, not found, not connected, unexpected bugs) is not.
    """
    if isinstance(error, ExternalServiceException):
        return error.retryable
    return isinstance(error, (TimeoutException, DatabaseException))


def exponential_backoff(base_seconds: float) -> Callable[[int], float]:
    """Backoff ``base * 2 ** attempt`` where ``attempt`` counts failures from 0."""

    def backoff(attempt: int) -> float:
        return base_seconds * 2**attempt

    return backoff


@dataclass
class RetryPolicy:
    """
    How an operation is retried.

    Attributes:
        max_attempts: Total attempts including the first one.
        backoff: Delay in seconds before the next attempt, given the 0-based
            index of the failed attempt.
        is_retryable: Predicate classifying a failure as transient.
        budget_seconds: Wall-clock budget across all attempts and delays.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: exponential_backoff(1.0))
    is_retryable: Callable[[BaseException], bool] = is_retryable_error
    budget_seconds: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            backoff=exponential_backoff(settings.RETRY_BACKOFF_BASE_SECONDS),
            budget_seconds=settings.RETRY_BUDGET_SECONDS,
        )


class RetryController:
    """
    Runs an async operation under a ``RetryPolicy``.

    Example:
        >>> controller = RetryController(RetryPolicy(max_attempts=3))
        >>> snapshots = await controller.execute(
        ...     lambda: metrics_recalculator.recalculate(workspace_id),
        ...     operation_name="recalculate_metrics",
        ...     context={"workspace_id": str(workspace_id)},
        ... )
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self._clock = clock

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: dict[str, Any] | None = None,
    ) -> T:
        """
        Execute ``operation`` until it succeeds, fails permanently, or runs out
        of attempts or time.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.
            operation_name: Name used in logs.
            context: Extra fields for logs (e.g. workspace_id).

        Returns:
            The operation's result.

        Raises:
            RetryExhaustedException: A retryable error persisted through every attempt.
            TimeoutException: The budget elapsed mid-attempt or would be exceeded
                by the next backoff.
            Exception: Any non-retryable error, on its first occurrence.
        """
        policy = self.policy
        log_context = " ".join(f"{k}={v}" for k, v in (context or {}).items())
        started = self._clock()

        for attempt in range(1, policy.max_attempts + 1):
            remaining = policy.budget_seconds - (self._clock() - started)
            if remaining <= 0:
                raise self._budget_exceeded(operation_name, log_context, attempt - 1)

            try:
                return await asyncio.wait_for(operation(), timeout=remaining)
            except asyncio.TimeoutError:
                raise self._budget_exceeded(operation_name, log_context, attempt)
            except Exception as e:
                elapsed_ms = int((self._clock() - started) * 1000)
                if not policy.is_retryable(e):
                    retry_logger.error(
                        f"{operation_name} failed permanently: {type(e).__name__}: {e} | "
                        f"{log_context} attempt={attempt}/{policy.max_attempts} "
                        f"elapsed_ms={elapsed_ms}"
                    )
                    raise

                retry_logger.warning(
                    f"{operation_name} attempt failed: {type(e).__name__}: {e} | "
                    f"{log_context} attempt={attempt}/{policy.max_attempts} "
                    f"elapsed_ms={elapsed_ms}"
                )

                if attempt >= policy.max_attempts:
                    retry_logger.error(
                        f"{operation_name} exhausted {attempt} attempts | {log_context} "
                        f"elapsed_ms={elapsed_ms}"
                    )
                    raise RetryExhaustedException(
                        f"{operation_name} failed after {attempt} attempts: {e}",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                delay = policy.backoff(attempt - 1)
                if (self._clock() - started) + delay > policy.budget_seconds:
                    raise self._budget_exceeded(operation_name, log_context, attempt) from e

                retry_logger.info(
                    f"Retrying {operation_name} in {delay:.2f}s | {log_context} "
                    f"next_attempt={attempt + 1}/{policy.max_attempts}"
                )
                await self._sleep(delay)

        # max_attempts < 1
        raise RetryExhaustedException(
            f"{operation_name} was not attempted",
            attempts=0,
            last_error=TimeoutException(),
        )

    def _budget_exceeded(
        self, operation_name: str, log_context: str, attempts: int
    ) -> TimeoutException:
        retry_logger.error(
            f"{operation_name} exceeded its {self.policy.budget_seconds}s budget | "
            f"{log_context} attempts={attempts}"
        )
        return TimeoutException(
            "Request timed out. Please try again.",
            details={"operation": operation_name, "attempts": attempts},
        )


__all__ = [
    "RetryController",
    "RetryPolicy",
    "exponential_backoff",
    "is_retryable_error",
]
