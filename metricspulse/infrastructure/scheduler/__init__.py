from metricspulse.infrastructure.scheduler.jobs import recalculate_all_workspaces
from metricspulse.infrastructure.scheduler.main import (
    initialize_scheduler,
    schedule_daily_snapshot_job,
    scheduler,
)

__all__ = [
    "scheduler",
    "recalculate_all_workspaces",
    "schedule_daily_snapshot_job",
    "initialize_scheduler",
]
