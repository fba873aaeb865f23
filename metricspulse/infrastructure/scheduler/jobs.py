from dataclasses import dataclass, field
from uuid import UUID

from metricspulse.apps.metrics.services.recalculator import (
    MetricsRecalculator,
    metrics_recalculator,
)
from metricspulse.core.config import scheduler_logger
from metricspulse.core.db import AsyncSessionLocal
from metricspulse.core.db.crud import connection_db
from metricspulse.core.exceptions.types import AppException
from metricspulse.core.services.retry import RetryController


@dataclass
class BatchResult:
    succeeded: list[UUID] = field(default_factory=list)
    failed: dict[UUID, str] = field(default_factory=dict)


async def recalculate_all_workspaces(
    recalculator: MetricsRecalculator = metrics_recalculator,
    retry_controller: RetryController | None = None,
    session_factory=AsyncSessionLocal,
) -> BatchResult:
    """
    Periodic task to record today's snapshots for every Stripe-connected workspace.

    A workspace that fails is logged and skipped; the batch continues.

    Returns:
        BatchResult: Workspaces that succeeded and the errors of those that failed.
    """
    retry_controller = retry_controller or RetryController()
    result = BatchResult()

    async with session_factory.begin() as session:
        workspace_ids = list(await connection_db.get_connected_workspace_ids(session))

    scheduler_logger.info(
        f"Starting daily recalculation for {len(workspace_ids)} workspace(s)"
    )

    for workspace_id in workspace_ids:
        try:
            await retry_controller.execute(
                lambda: recalculator.recalculate(workspace_id),
                operation_name="scheduled_recalculation",
                context={"workspace_id": workspace_id},
            )
            result.succeeded.append(workspace_id)
        except AppException as e:
            scheduler_logger.error(
                f"Scheduled recalculation failed for workspace {workspace_id}: "
                f"{type(e).__name__}: {e}"
            )
            result.failed[workspace_id] = e.message

    scheduler_logger.info(
        f"Completed daily recalculation. Succeeded: {len(result.succeeded)}, "
        f"failed: {len(result.failed)}"
    )
    return result
