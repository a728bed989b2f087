"""Scheduled link maintenance jobs."""

import logging
from typing import Callable, Optional

from linkvault.db.repository import SqlAlchemyLinkRepository
from linkvault.db.session import AsyncSessionLocal
from linkvault.ingest.link_validator import LinkValidator
from linkvault.monitor.health import HealthMonitor, HealthSweepSummary

logger = logging.getLogger(__name__)


async def run_health_sweep(
    session_factory: Optional[Callable] = None,
    batch_size: Optional[int] = None,
) -> HealthSweepSummary:
    """
    Entry point for the scheduler: sweep every active link once.

    Args:
        session_factory: Async session factory (defaults to AsyncSessionLocal)
        batch_size: Links per page (defaults to settings.health_check_batch_size)

    Returns:
        Sweep totals
    """
    session_factory = session_factory or AsyncSessionLocal
    async with session_factory() as db, LinkValidator() as validator:
        monitor = HealthMonitor(SqlAlchemyLinkRepository(db), validator, batch_size)
        return await monitor.run_sweep()
