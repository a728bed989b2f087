"""Affiliate link routes."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from linkvault.api.deps import get_link_processor, get_repository
from linkvault.db.repository import LinkRepository, StaleRotationConfigError
from linkvault.ingest.pipeline import LinkProcessor, ProcessOptions
from linkvault.ingest.platforms import clean_url, detect_platform, extract_affiliate_params
from linkvault.ingest.shortener import ShortCodeExhaustedError, ShortCodeTakenError
from linkvault.monitor.health import HealthMonitor
from linkvault.reports.performance import DateRange, PerformanceReportGenerator
from linkvault.rotation.engine import (
    RotationConfigError,
    RotationEngine,
    VisitorContext,
    setup_link_rotation,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/links", tags=["links"])


class ProcessRequest(BaseModel):
    url: str = Field(..., min_length=1)
    extract_product_info: bool = True
    validate_link: bool = True
    create_short_url: bool = True
    custom_domain: Optional[str] = None
    # When set, the processed link is stored for this product
    product_id: Optional[str] = None
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)

    def options(self) -> ProcessOptions:
        return ProcessOptions(
            extract_product_info=self.extract_product_info,
            validate_link=self.validate_link,
            create_short_url=self.create_short_url,
            custom_domain=self.custom_domain,
        )


class BulkProcessRequest(BaseModel):
    urls: List[str] = Field(..., min_length=1, max_length=100)
    extract_product_info: bool = True
    validate_link: bool = True
    create_short_url: bool = False
    custom_domain: Optional[str] = None
    batch_size: Optional[int] = Field(default=None, ge=1, le=50)


class HealthCheckRequest(BaseModel):
    link_ids: List[str] = Field(..., min_length=1, max_length=500)


class ShortenRequest(BaseModel):
    url: str = Field(..., min_length=1)
    custom_domain: Optional[str] = None
    custom_slug: Optional[str] = None


class RotationRequest(BaseModel):
    product_id: str
    strategy: str = "weighted"
    weights: Optional[Dict[str, float]] = None
    test_duration_days: int = Field(default=30, ge=1, le=365)
    traffic_split: float = Field(default=1.0, ge=0.1, le=1.0)
    geo_targeting: Dict[str, List[str]] = Field(default_factory=dict)
    device_targeting: Dict[str, List[str]] = Field(default_factory=dict)
    # Version last read by the caller; omit to overwrite unconditionally
    expected_version: Optional[int] = None


class RotationSelectRequest(BaseModel):
    product_id: str
    country: Optional[str] = None
    device: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class PerformanceReportRequest(BaseModel):
    link_ids: List[str] = Field(..., min_length=1)
    start: datetime
    end: datetime


class ReplaceRequest(BaseModel):
    content: str
    replacement_map: Optional[Dict[str, str]] = None


class LinkResponse(BaseModel):
    id: str
    product_id: str
    platform_id: str
    original_url: str
    shortened_url: Optional[str]
    short_code: Optional[str]
    commission_rate: Decimal
    is_active: bool
    priority: int
    version: int

    class Config:
        from_attributes = True


def _naive_utc(value: datetime) -> datetime:
    """Event timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@router.get("/analyze")
async def analyze_url(url: str = Query(..., min_length=1)):
    """Detect the platform of a URL without touching the network."""
    detection = detect_platform(url)
    return {
        "url": url,
        "cleaned_url": clean_url(url),
        "detection": asdict(detection),
        "affiliate_params": extract_affiliate_params(url),
    }


@router.post("/process")
async def process_url(
    request: ProcessRequest,
    processor: LinkProcessor = Depends(get_link_processor),
):
    """Run a URL through the ingestion pipeline, storing it when product_id is set."""
    try:
        if request.product_id:
            ingest = await processor.ingest_link(
                request.url,
                request.product_id,
                commission_rate=request.commission_rate,
                options=request.options(),
            )
            return {
                "original_url": ingest.original_url,
                "created": ingest.created,
                "skipped_reason": ingest.skipped_reason,
                "result": asdict(ingest.result) if ingest.result else None,
                "link": LinkResponse.model_validate(ingest.link) if ingest.link else None,
            }

        result = await processor.process_url(request.url, request.options())
        return asdict(result)
    except ShortCodeExhaustedError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/bulk")
async def bulk_process(
    request: BulkProcessRequest,
    processor: LinkProcessor = Depends(get_link_processor),
):
    """Process up to 100 URLs in batches."""
    options = ProcessOptions(
        extract_product_info=request.extract_product_info,
        validate_link=request.validate_link,
        create_short_url=request.create_short_url,
        custom_domain=request.custom_domain,
    )
    items = await processor.bulk_process_urls(request.urls, options, batch_size=request.batch_size)
    return {
        "total": len(items),
        "failed": sum(1 for item in items if not item.ok),
        "results": [asdict(item) for item in items],
    }


@router.post("/health-check")
async def health_check(
    request: HealthCheckRequest,
    processor: LinkProcessor = Depends(get_link_processor),
):
    """Validate stored links without changing their status."""
    monitor = HealthMonitor(processor.repository, processor.validator)
    checks = await monitor.perform_health_check(request.link_ids)
    return {
        "checked": len(checks),
        "healthy": sum(1 for check in checks if check.is_healthy),
        "results": [asdict(check) for check in checks],
    }


@router.post("/shorten", status_code=201)
async def shorten(
    request: ShortenRequest,
    processor: LinkProcessor = Depends(get_link_processor),
):
    """Create a shortened URL."""
    try:
        short_url = await processor.shortener.create_short_url(
            request.url,
            custom_domain=request.custom_domain,
            custom_slug=request.custom_slug,
        )
    except ShortCodeTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ShortCodeExhaustedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"original_url": request.url, "shortened_url": short_url}


@router.post("/rotation", status_code=201)
async def configure_rotation(
    request: RotationRequest,
    repository: LinkRepository = Depends(get_repository),
):
    """Create or replace the rotation config for a product."""
    candidates = await repository.get_active_links_for_product(request.product_id)
    try:
        config = setup_link_rotation(
            request.product_id,
            candidates,
            request.strategy,
            weights=request.weights,
            test_duration_days=request.test_duration_days,
            traffic_split=request.traffic_split,
            geo_targeting=request.geo_targeting,
            device_targeting=request.device_targeting,
        )
        saved = await repository.save_rotation_config(config, request.expected_version)
    except RotationConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaleRotationConfigError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return asdict(saved)


@router.post("/rotation/select")
async def select_rotation_link(
    request: RotationSelectRequest,
    repository: LinkRepository = Depends(get_repository),
):
    """Pick the link to serve for a visitor."""
    candidates = await repository.get_active_links_for_product(request.product_id)
    if not candidates:
        raise HTTPException(status_code=404, detail="No active links for product")

    config = await repository.get_rotation_config(request.product_id)
    if config is not None and config.is_expired():
        logger.info(f"Rotation config for {request.product_id} expired; serving default link")
        config = None

    visitor = VisitorContext(
        country=request.country,
        device=request.device,
        user_agent=request.user_agent,
        referrer=request.referrer,
    )
    link = RotationEngine(config).select_with_targeting(candidates, visitor)
    return {
        "link": LinkResponse.model_validate(link),
        "strategy": config.strategy.value if config else None,
        "url": link.shortened_url or link.original_url,
    }


@router.post("/reports/performance")
async def performance_report(
    request: PerformanceReportRequest,
    repository: LinkRepository = Depends(get_repository),
):
    """Per-link clicks, conversions, revenue and breakdowns for a date range."""
    try:
        date_range = DateRange(_naive_utc(request.start), _naive_utc(request.end))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    report = await PerformanceReportGenerator(repository).generate(request.link_ids, date_range)
    if not report.links:
        raise HTTPException(status_code=404, detail="No matching links")
    return asdict(report)


@router.post("/replace")
async def replace_links(
    request: ReplaceRequest,
    processor: LinkProcessor = Depends(get_link_processor),
):
    """Rewrite affiliate URLs in content to shortened URLs."""
    content = await processor.replace_links_in_content(request.content, request.replacement_map)
    return {"content": content}
