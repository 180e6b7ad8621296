"""
Scheduled synchronization.

Runs the selected syncers on a cron schedule (SYNC_SCHEDULE) so the target
keeps mirroring the source. Each tick runs incrementally from the stored
checkpoints; only one tick runs at a time.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "project_sync"


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(sync_task: Callable[[], Awaitable], schedule: str) -> AsyncIOScheduler:
    """Create a scheduler with a single sync job on the given crontab schedule"""
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        sync_task,
        CronTrigger.from_crontab(schedule),
        id=SYNC_JOB_ID,
        name="Project Sync",
        replace_existing=True,
        max_instances=1,  # Only one sync at a time
        coalesce=True,
        misfire_grace_time=3600  # 1 hour grace time
    )
    logger.info(f"Scheduled sync job added with schedule: {schedule}")
    return scheduler


async def run_scheduled(sync_task: Callable[[], Awaitable], schedule: str, stop_event: Optional[asyncio.Event] = None):
    """Start the scheduler and keep it running until stop_event is set"""
    stop_event = stop_event or asyncio.Event()
    scheduler = create_scheduler(sync_task, schedule)
    scheduler.start()

    for job in scheduler.get_jobs():
        logger.info(f"  - {job.name}: {job.trigger} (next run: {job.next_run_time})")

    try:
        await stop_event.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
