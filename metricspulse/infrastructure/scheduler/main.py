"""
Scheduler for periodic metric snapshots.

Jobs live in the default in-memory job store; they are re-registered on
every startup with ``replace_existing=True``.
"""

from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from metricspulse.core.config import scheduler_logger, settings


scheduler = AsyncIOScheduler(timezone=timezone.utc)

DAILY_SNAPSHOT_JOB_ID = "recalculate_all_workspaces_job"


def schedule_daily_snapshot_job(hour: int | None = None) -> None:
    """
    Schedule the recalculate_all_workspaces job to run daily at ``hour``:00 UTC.
    """
    # Import here to avoid circular import issues
    from metricspulse.infrastructure.scheduler.jobs import recalculate_all_workspaces

    hour = settings.SNAPSHOT_CRON_HOUR if hour is None else hour
    scheduler_logger.info(
        f"Scheduling 'recalculate_all_workspaces' job to run daily at {hour:02d}:00 UTC"
    )
    scheduler.add_job(
        recalculate_all_workspaces,
        trigger=CronTrigger(hour=hour, minute=0, timezone=timezone.utc),
        replace_existing=True,
        id=DAILY_SNAPSHOT_JOB_ID,
        misfire_grace_time=60 * 60,  # 1 hour grace time
        coalesce=True,
    )
    scheduler_logger.info("'recalculate_all_workspaces' job scheduled successfully.")


def initialize_scheduler() -> None:
    """Register every periodic job."""
    schedule_daily_snapshot_job()
