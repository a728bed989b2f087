"""Link health monitoring.

Validates affiliate links in pages and deactivates the ones that fail.
A single failed check deactivates a link; reactivation is a manual,
external action.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from linkvault.config import settings
from linkvault.db.repository import LinkRepository
from linkvault.ingest.link_validator import LinkValidator
from linkvault.logging_config import get_logger
from linkvault import metrics

logger = logging.getLogger(__name__)


@dataclass
class LinkHealthCheck:
    """Health check outcome for one link."""

    link_id: str
    is_healthy: bool
    last_checked: datetime
    status: int
    response_time_ms: float
    error: Optional[str] = None


@dataclass
class HealthSweepSummary:
    """Totals for one full sweep over the active inventory."""

    checked: int = 0
    healthy: int = 0
    deactivated: int = 0
    batches: int = 0

    @property
    def unhealthy(self) -> int:
        return self.checked - self.healthy


class HealthMonitor:
    """
    Sweeps the link inventory with LinkValidator.

    Owned by the caller: construct one per sweep (or per scheduler job)
    with a repository bound to a session.
    """

    def __init__(
        self,
        repository: LinkRepository,
        validator: Optional[LinkValidator] = None,
        batch_size: Optional[int] = None,
    ):
        self.repository = repository
        self.validator = validator or LinkValidator()
        self.batch_size = batch_size or settings.health_check_batch_size

    async def _check_link(self, link) -> LinkHealthCheck:
        validation = await self.validator.validate(link.original_url)
        return LinkHealthCheck(
            link_id=link.id,
            is_healthy=validation.is_valid,
            last_checked=datetime.now(timezone.utc),
            status=validation.status,
            response_time_ms=validation.response_time_ms,
            error=validation.error,
        )

    async def _check_links(self, links: Sequence) -> list[LinkHealthCheck]:
        """Validate links concurrently; one failure never cancels the others."""
        results = await asyncio.gather(
            *(self._check_link(link) for link in links),
            return_exceptions=True,
        )
        checks = []
        for link, result in zip(links, results):
            if isinstance(result, BaseException):
                logger.error(f"Health check crashed for link {link.id}: {result!r}")
                continue
            checks.append(result)
        return checks

    async def perform_health_check(self, link_ids: Sequence[str]) -> list[LinkHealthCheck]:
        """
        Check the given links without changing their status.

        Links that cannot be loaded, and checks that crash, are left out
        of the result.
        """
        links = await self.repository.get_links(link_ids)
        return await self._check_links(links)

    async def _deactivate_failures(self, checks: Sequence[LinkHealthCheck]) -> int:
        deactivated = 0
        for check in checks:
            if check.is_healthy:
                continue
            link_logger = get_logger(__name__, link_id=check.link_id, status=check.status)
            if await self.repository.deactivate_link(check.link_id):
                deactivated += 1
                link_logger.warning(
                    f"Deactivated link {check.link_id}: {check.error or f'HTTP {check.status}'}"
                )
        if deactivated:
            metrics.record_deactivation(deactivated)
        return deactivated

    async def run_sweep(self, batch_size: Optional[int] = None) -> HealthSweepSummary:
        """
        Check every active link page by page and deactivate failures.

        Pages are keyed on the last seen id, so links deactivated in one
        page do not shift the next page.
        """
        size = batch_size or self.batch_size
        summary = HealthSweepSummary()
        after_id: Optional[str] = None

        logger.info(f"Starting link health sweep (batch_size={size})")
        try:
            while True:
                links = await self.repository.list_active_links(after_id=after_id, limit=size)
                if not links:
                    break

                checks = await self._check_links(links)
                summary.batches += 1
                summary.checked += len(checks)
                summary.healthy += sum(1 for c in checks if c.is_healthy)
                summary.deactivated += await self._deactivate_failures(checks)

                after_id = links[-1].id
                if len(links) < size:
                    break
        except Exception:
            metrics.record_health_sweep(False)
            raise

        metrics.record_health_sweep(True)
        logger.info(
            f"Health sweep complete: checked={summary.checked}, healthy={summary.healthy}, "
            f"deactivated={summary.deactivated}, batches={summary.batches}"
        )
        return summary


async def perform_health_check(
    repository: LinkRepository, link_ids: Sequence[str]
) -> list[LinkHealthCheck]:
    """Check links with a short-lived validator."""
    async with LinkValidator() as validator:
        return await HealthMonitor(repository, validator).perform_health_check(link_ids)
