"""Fetch product pages and run the matching site adapter."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from linkvault.config import settings
from linkvault.ingest.extractors import Page, ProductInfo, get_adapter_for_platform
from linkvault.ingest.http_client import (
    TRANSPORT_ERRORS,
    create_client,
    describe_error,
    is_http_url,
    timeout_message,
)
from linkvault.ingest.platforms import PlatformDetector
from linkvault import metrics

logger = logging.getLogger(__name__)


@dataclass
class ProductExtractionResult:
    """
    Extraction outcome.

    ok is False when the page could not be fetched or parsed (error is set).
    ok with info.is_empty means the page loaded but nothing was found.
    """

    info: ProductInfo = field(default_factory=ProductInfo)
    platform: str = "unknown"
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProductExtractor:
    """Best-effort product scraper. extract() never raises."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        detector: Optional[PlatformDetector] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.detector = detector or PlatformDetector()
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_client(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if this extractor created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def parse(self, html: str, url: str, platform: Optional[str] = None) -> ProductInfo:
        """Run the adapter for platform (detected from url when omitted) over html."""
        if platform is None:
            platform = self.detector.detect(url).platform
        adapter = get_adapter_for_platform(platform)
        return adapter.extract(Page(html, url))

    async def extract(self, url: str, platform: Optional[str] = None) -> ProductExtractionResult:
        """
        Fetch url and extract product fields.

        Args:
            url: Product page URL
            platform: Already-detected platform key; detected from url if omitted

        Returns:
            ProductExtractionResult; failures are reported in .error
        """
        if not is_http_url(url):
            return ProductExtractionResult(error=f"Invalid URL: {url!r}")

        if platform is None:
            platform = self.detector.detect(url).platform

        start = time.perf_counter()
        try:
            # Bounds the full download, not just each read
            response = await asyncio.wait_for(
                self._get_client().get(url, timeout=self.timeout), timeout=self.timeout
            )
        except (TRANSPORT_ERRORS + (asyncio.TimeoutError,)) as e:
            if isinstance(e, asyncio.TimeoutError):
                error = timeout_message(self.timeout)
            else:
                error = describe_error(e)
            logger.warning(f"Product fetch failed for {url}: {error}")
            metrics.record_extraction(platform, False, time.perf_counter() - start)
            return ProductExtractionResult(platform=platform, error=error)

        if not response.is_success:
            logger.warning(f"Product fetch for {url} returned HTTP {response.status_code}")
            metrics.record_extraction(platform, False, time.perf_counter() - start)
            return ProductExtractionResult(
                platform=platform,
                status=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        try:
            info = self.parse(response.text, str(response.url), platform)
        except Exception as e:
            logger.warning(f"Product parse failed for {url}: {e}")
            metrics.record_extraction(platform, False, time.perf_counter() - start)
            return ProductExtractionResult(
                platform=platform,
                status=response.status_code,
                error=f"Parse error: {e}",
            )

        metrics.record_extraction(platform, True, time.perf_counter() - start)
        if info.is_empty:
            logger.info(f"No product data found at {url} (platform={platform})")
        return ProductExtractionResult(info=info, platform=platform, status=response.status_code)


async def extract_product_info(url: str) -> ProductExtractionResult:
    """Extract product data from a single URL with a short-lived client."""
    async with ProductExtractor() as extractor:
        return await extractor.extract(url)
