"""APScheduler configuration for workflow supervision jobs."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
import logging

from outreach.config import settings

logger = logging.getLogger(__name__)

# Create scheduler instance
scheduler = AsyncIOScheduler()


async def run_retry_sweep(manager):
    """
    Re-dispatch enrichment for failed companies under the attempt ceiling.
    Called by APScheduler.
    """
    try:
        logger.info("Running scheduled enrichment retry sweep...")
        result = await manager.bulk_retry_failed()
        logger.info(f"Retry sweep complete: {result['retried']} retried, {result['skipped']} over the attempt limit")
    except Exception as e:
        logger.error(f"Error in retry sweep: {e}")


async def fail_stale_tasks(manager):
    """
    Fail background tasks that stopped reporting progress.

    Dispatched work lives in memory, so a restart leaves its task rows
    pending/processing forever; this marks them failed so they can be retried.
    """
    try:
        stale = manager.fail_stale_tasks()
        if stale:
            logger.info(f"Stale task check: failed {len(stale)} tasks")
    except Exception as e:
        logger.error(f"Error in stale task check: {e}")


def start_scheduler(manager):
    """
    Initialize and start the APScheduler.

    Jobs:
    - Enrichment retry sweep: RETRY_SWEEP_SCHEDULE (cron, default every 30 minutes)
    - Stale task check: every STALE_TASK_MINUTES / 2 minutes
    """
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    try:
        scheduler.add_job(
            run_retry_sweep,
            trigger=CronTrigger.from_crontab(settings.RETRY_SWEEP_SCHEDULE),
            args=[manager],
            id='enrichment_retry_sweep',
            name='Enrichment Retry Sweep',
            replace_existing=True,
            max_instances=1
        )
        logger.info(f"✅ Scheduled: Enrichment Retry Sweep ({settings.RETRY_SWEEP_SCHEDULE})")

        scheduler.add_job(
            fail_stale_tasks,
            trigger=IntervalTrigger(minutes=max(settings.STALE_TASK_MINUTES // 2, 1)),
            args=[manager],
            id='stale_task_check',
            name='Stale Task Check',
            replace_existing=True,
            max_instances=1
        )
        logger.info("✅ Scheduled: Stale Task Check")

        scheduler.start()
        logger.info("✅ APScheduler started successfully!")

        for job in scheduler.get_jobs():
            logger.info(f"   • {job.name}: Next run at {job.next_run_time}")

    except Exception as e:
        logger.error(f"❌ Error starting scheduler: {e}")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
