"""Per-link performance reports over a date window."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence
from urllib.parse import urlsplit

from linkvault.db.repository import LinkRepository

logger = logging.getLogger(__name__)

UNKNOWN_BUCKET = "unknown"
DIRECT_BUCKET = "direct"


@dataclass
class DateRange:
    """Inclusive reporting window."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("start must not be after end")


@dataclass
class LinkMetrics:
    clicks: int = 0
    conversions: int = 0
    revenue: Decimal = Decimal("0")
    conversion_rate: float = 0.0
    average_order_value: Decimal = Decimal("0")
    commission: Decimal = Decimal("0")


@dataclass
class LinkPerformance:
    link_id: str
    platform: Optional[str]
    product_id: str
    original_url: str
    shortened_url: Optional[str]
    metrics: LinkMetrics
    device_breakdown: dict[str, int] = field(default_factory=dict)
    country_breakdown: dict[str, int] = field(default_factory=dict)
    referrer_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass
class ReportSummary:
    total_links: int = 0
    total_clicks: int = 0
    total_conversions: int = 0
    total_revenue: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    average_conversion_rate: float = 0.0


@dataclass
class PerformanceReport:
    date_range: DateRange
    summary: ReportSummary
    links: list[LinkPerformance] = field(default_factory=list)


def referrer_host(referrer: Optional[str]) -> str:
    """Hostname of a referrer URL, or "direct" when missing or unparseable."""
    if not referrer:
        return DIRECT_BUCKET
    try:
        host = urlsplit(referrer).hostname
    except ValueError:
        return DIRECT_BUCKET
    return host or DIRECT_BUCKET


def _bucket(value: Optional[str]) -> str:
    return value or UNKNOWN_BUCKET


def build_link_performance(
    link: Any,
    clicks: Sequence[Any],
    conversions: Sequence[Any],
) -> LinkPerformance:
    """
    Compute metrics and breakdowns for one link.

    Args:
        link: AffiliateLink (or any object with the same attributes)
        clicks: Click events for this link inside the window
        conversions: Conversion events for this link inside the window

    Returns:
        LinkPerformance with Decimal money fields
    """
    click_count = len(clicks)
    conversion_count = len(conversions)
    revenue = sum((Decimal(str(c.order_value)) for c in conversions), Decimal("0"))
    commission_rate = Decimal(str(link.commission_rate or 0))

    metrics = LinkMetrics(
        clicks=click_count,
        conversions=conversion_count,
        revenue=revenue,
        conversion_rate=conversion_count / click_count if click_count else 0.0,
        average_order_value=revenue / conversion_count if conversion_count else Decimal("0"),
        commission=revenue * commission_rate,
    )

    platform = getattr(link, "platform", None)
    return LinkPerformance(
        link_id=link.id,
        platform=platform.display_name if platform is not None else None,
        product_id=link.product_id,
        original_url=link.original_url,
        shortened_url=link.shortened_url,
        metrics=metrics,
        device_breakdown=dict(Counter(_bucket(c.device) for c in clicks)),
        country_breakdown=dict(Counter(_bucket(c.country) for c in clicks)),
        referrer_breakdown=dict(Counter(referrer_host(c.referrer) for c in clicks)),
    )


def summarize(reports: Sequence[LinkPerformance]) -> ReportSummary:
    if not reports:
        return ReportSummary()
    return ReportSummary(
        total_links=len(reports),
        total_clicks=sum(r.metrics.clicks for r in reports),
        total_conversions=sum(r.metrics.conversions for r in reports),
        total_revenue=sum((r.metrics.revenue for r in reports), Decimal("0")),
        total_commission=sum((r.metrics.commission for r in reports), Decimal("0")),
        average_conversion_rate=sum(r.metrics.conversion_rate for r in reports) / len(reports),
    )


class PerformanceReportGenerator:
    """Builds performance reports from stored click and conversion events."""

    def __init__(self, repository: LinkRepository):
        self.repository = repository

    async def generate(
        self, link_ids: Sequence[str], date_range: DateRange
    ) -> PerformanceReport:
        links = await self.repository.get_links(link_ids)
        found_ids = [link.id for link in links]
        missing = set(link_ids) - set(found_ids)
        if missing:
            logger.warning(f"Skipping {len(missing)} unknown link(s) in performance report")

        clicks = await self.repository.get_click_events(found_ids, date_range.start, date_range.end)
        conversions = await self.repository.get_conversion_events(
            found_ids, date_range.start, date_range.end
        )

        clicks_by_link: dict[str, list] = {}
        for click in clicks:
            clicks_by_link.setdefault(click.link_id, []).append(click)
        conversions_by_link: dict[str, list] = {}
        for conversion in conversions:
            conversions_by_link.setdefault(conversion.link_id, []).append(conversion)

        reports = [
            build_link_performance(
                link,
                clicks_by_link.get(link.id, []),
                conversions_by_link.get(link.id, []),
            )
            for link in links
        ]
        return PerformanceReport(date_range=date_range, summary=summarize(reports), links=reports)


async def generate_link_performance_report(
    repository: LinkRepository, link_ids: Sequence[str], date_range: DateRange
) -> PerformanceReport:
    return await PerformanceReportGenerator(repository).generate(link_ids, date_range)
