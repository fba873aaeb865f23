from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from metricspulse.core.db.models.base import BaseModel
from metricspulse.core.enums import MetricName

if TYPE_CHECKING:
    from metricspulse.core.db.models.workspace import Workspace


class MetricSnapshot(BaseModel):
    """
    One recorded value of one metric for one workspace.

    Snapshots are append-only: at most one row exists per
    (workspace, metric, UTC day), and a row is never updated after insert.

    Attributes:
        workspace_id: Owning workspace.
        metric_name: Which metric the value measures.
        value: Metric value (currency units, ratio, or count).
        recorded_at: Calculation timestamp (UTC).
        recorded_on: UTC calendar day of ``recorded_at``.
    """

    __tablename__ = "metric_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "metric_name",
            "recorded_on",
            name="uq_metric_snapshots_workspace_metric_day",
        ),
        Index("ix_metric_snapshots_workspace_recorded_at", "workspace_id", "recorded_at"),
    )

    workspace_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    metric_name: Mapped[MetricName] = mapped_column(
        Enum(MetricName, native_enum=False, name="metric_name"),
        nullable=False,
    )

    value: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4, asdecimal=True),
        nullable=False,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    recorded_on: Mapped[date] = mapped_column(Date, nullable=False)

    workspace: Mapped["Workspace"] = relationship(back_populates="metric_snapshots")

    def __repr__(self) -> str:
        return (
            f"<MetricSnapshot(workspace_id={self.workspace_id}, "
            f"metric={self.metric_name}, value={self.value}, on={self.recorded_on})>"
        )


__all__ = ["MetricSnapshot"]
