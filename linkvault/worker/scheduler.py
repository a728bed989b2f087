"""APScheduler job definitions."""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from linkvault.config import settings
from linkvault.worker.tasks import run_health_sweep

logger = logging.getLogger(__name__)


def setup_scheduler() -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    The health sweep runs every settings.health_check_interval_minutes,
    first one minute after startup.

    Returns:
        Configured scheduler instance
    """
    scheduler = AsyncIOScheduler()
    interval = max(1, int(settings.health_check_interval_minutes))

    if settings.health_check_enabled:
        scheduler.add_job(
            run_health_sweep,
            IntervalTrigger(minutes=interval),
            id="link_health_sweep",
            name="Validate active affiliate links",
            max_instances=1,  # Prevent overlapping sweeps
            coalesce=True,
            misfire_grace_time=600,
            next_run_time=datetime.now(timezone.utc) + timedelta(minutes=1),
            replace_existing=True,
        )
        logger.info(f"Scheduler configured: link health sweep every {interval} minutes")
    else:
        logger.info("Scheduler configured: link health sweep disabled")

    return scheduler
