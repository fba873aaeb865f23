"""
CRUD operations for MetricSnapshot model.

Snapshots are insert-only. A second write for the same
(workspace, metric, UTC day) leaves the stored row untouched and returns it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from metricspulse.core.db.crud.base import BaseDB, dialect_insert
from metricspulse.core.db.models.metric_snapshot import MetricSnapshot
from metricspulse.core.enums import MetricName
from metricspulse.core.exceptions.types import DatabaseException
from metricspulse.core.utils import ensure_utc


class MetricSnapshotDB(BaseDB[MetricSnapshot]):
    """CRUD operations for MetricSnapshot model."""

    def __init__(self):
        super().__init__(MetricSnapshot)

    async def record(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        metric_name: MetricName,
        value: Decimal,
        recorded_at: datetime,
        commit_self: bool = True,
    ) -> tuple[MetricSnapshot, bool]:
        """
        Insert a snapshot unless one already exists for the same UTC day.

        Args:
            session: Database session.
            workspace_id: Workspace the value belongs to.
            metric_name: Metric being recorded.
            value: Metric value.
            recorded_at: Calculation timestamp; its UTC date selects the day slot.
            commit_self: Whether to commit after the operation.

        Returns:
            A tuple of (snapshot, created). When ``created`` is False the
            snapshot is the row that was already stored for that day.

        Raises:
            DatabaseException: If an error occurs during the operation.
        """
        recorded_at = ensure_utc(recorded_at)
        recorded_on = recorded_at.date()
        try:
            insert = dialect_insert(session)
            stmt = (
                insert(MetricSnapshot)
                .values(
                    id=uuid4(),
                    workspace_id=workspace_id,
                    metric_name=metric_name,
                    value=value,
                    recorded_at=recorded_at,
                    recorded_on=recorded_on,
                    created_at=recorded_at,
                    updated_at=recorded_at,
                )
                .on_conflict_do_nothing(
                    index_elements=["workspace_id", "metric_name", "recorded_on"]
                )
                .returning(MetricSnapshot)
            )
            result = await session.execute(stmt)
            snapshot = result.scalar_one_or_none()
            created = snapshot is not None

            if snapshot is None:
                existing = await session.execute(
                    select(MetricSnapshot).where(
                        MetricSnapshot.workspace_id == workspace_id,
                        MetricSnapshot.metric_name == metric_name,
                        MetricSnapshot.recorded_on == recorded_on,
                    )
                )
                snapshot = existing.scalar_one()

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return snapshot, created
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error recording {metric_name} snapshot for workspace {workspace_id}: {str(e)}"
            ) from e

    async def get_since(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        since: datetime,
        metric_name: MetricName | None = None,
        limit: int = 1000,
    ) -> Sequence[MetricSnapshot]:
        """
        Get the workspace's snapshots recorded at or after ``since``, newest first.
        """
        conditions = [
            MetricSnapshot.workspace_id == workspace_id,
            MetricSnapshot.recorded_at >= since,
        ]
        if metric_name is not None:
            conditions.append(MetricSnapshot.metric_name == metric_name)
        return await self.get_by_conditions(
            session,
            conditions,
            order_by=[MetricSnapshot.recorded_at.desc()],
            limit=limit,
        )

    async def get_latest(
        self, session: AsyncSession, workspace_id: UUID
    ) -> MetricSnapshot | None:
        snapshots = await self.get_by_conditions(
            session,
            [MetricSnapshot.workspace_id == workspace_id],
            order_by=[MetricSnapshot.recorded_at.desc()],
            limit=1,
        )
        return snapshots[0] if snapshots else None
