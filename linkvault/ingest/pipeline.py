"""URL ingestion pipeline.

detect platform -> validate -> extract product -> shorten -> persist
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from linkvault.config import settings
from linkvault.db.models import AffiliateLink
from linkvault.db.repository import LinkRepository
from linkvault.ingest.link_validator import LinkValidationResult, LinkValidator
from linkvault.ingest.platforms import PlatformDetectionResult, PlatformDetector, clean_url
from linkvault.ingest.product_extractor import ProductExtractionResult, ProductExtractor
from linkvault.ingest.shortener import URLShortener, short_code_from_url

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)

# Only confidently detected affiliate URLs are rewritten in content
REPLACE_MIN_CONFIDENCE = 0.7


@dataclass
class ProcessOptions:
    extract_product_info: bool = True
    validate_link: bool = True
    create_short_url: bool = True
    custom_domain: Optional[str] = None


@dataclass
class ProcessResult:
    original_url: str
    platform_detection: PlatformDetectionResult
    validation: Optional[LinkValidationResult] = None
    product_info: Optional[ProductExtractionResult] = None
    shortened_url: Optional[str] = None

    @property
    def short_code(self) -> Optional[str]:
        return short_code_from_url(self.shortened_url) if self.shortened_url else None

    @property
    def is_valid(self) -> bool:
        """False only when validation ran and failed."""
        return self.validation is None or self.validation.is_valid


@dataclass
class BulkItemResult:
    original_url: str
    result: Optional[ProcessResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestResult:
    original_url: str
    result: Optional[ProcessResult] = None
    link: Optional[AffiliateLink] = None
    created: bool = False
    skipped_reason: Optional[str] = None


class LinkProcessor:
    """
    Runs URLs through the ingestion components.

    Components not supplied are created here and closed by close().
    """

    def __init__(
        self,
        repository: LinkRepository,
        detector: Optional[PlatformDetector] = None,
        extractor: Optional[ProductExtractor] = None,
        validator: Optional[LinkValidator] = None,
        shortener: Optional[URLShortener] = None,
    ):
        self.repository = repository
        self.detector = detector or PlatformDetector()
        self.extractor = extractor
        self.validator = validator
        self.shortener = shortener
        self._owned = []
        if self.extractor is None:
            self.extractor = ProductExtractor(detector=self.detector)
            self._owned.append(self.extractor)
        if self.validator is None:
            self.validator = LinkValidator()
            self._owned.append(self.validator)
        if self.shortener is None:
            self.shortener = URLShortener(self.repository.short_code_exists)

    async def close(self):
        for component in self._owned:
            await component.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def process_url(
        self, url: str, options: Optional[ProcessOptions] = None
    ) -> ProcessResult:
        """
        Detect, validate, extract and shorten a single URL.

        Extraction is skipped when validation ran and failed.

        Raises:
            ShortCodeExhaustedError: no unique short code could be generated
        """
        options = options or ProcessOptions()
        result = ProcessResult(original_url=url, platform_detection=self.detector.detect(url))

        if options.validate_link:
            result.validation = await self.validator.validate(url)

        if options.extract_product_info and result.is_valid:
            result.product_info = await self.extractor.extract(
                url, platform=result.platform_detection.platform
            )

        if options.create_short_url:
            result.shortened_url = await self.shortener.create_short_url(
                url, custom_domain=options.custom_domain
            )

        return result

    async def _process_isolated(self, url: str, options: ProcessOptions) -> BulkItemResult:
        try:
            return BulkItemResult(original_url=url, result=await self.process_url(url, options))
        except Exception as e:
            logger.error(f"Failed to process {url}: {e}")
            return BulkItemResult(original_url=url, error=str(e) or type(e).__name__)

    async def bulk_process_urls(
        self,
        urls: Sequence[str],
        options: Optional[ProcessOptions] = None,
        batch_size: Optional[int] = None,
        delay_seconds: Optional[float] = None,
    ) -> list[BulkItemResult]:
        """
        Process URLs in concurrent batches, in input order.

        A failing URL yields an item with error set; the rest of the batch
        is unaffected. Batches are separated by bulk_batch_delay_seconds.
        """
        options = options or ProcessOptions()
        size = batch_size or settings.bulk_batch_size
        delay = settings.bulk_batch_delay_seconds if delay_seconds is None else delay_seconds
        results: list[BulkItemResult] = []

        for start in range(0, len(urls), size):
            batch = urls[start:start + size]
            batch_results = await asyncio.gather(
                *(self._process_isolated(url, options) for url in batch),
                return_exceptions=True,
            )
            for url, item in zip(batch, batch_results):
                if isinstance(item, BaseException):
                    item = BulkItemResult(original_url=url, error=str(item) or type(item).__name__)
                results.append(item)

            if start + size < len(urls):
                await asyncio.sleep(delay)

        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Bulk processed {len(results)} URLs ({failed} failed)")
        return results

    async def ingest_link(
        self,
        url: str,
        product_id: str,
        commission_rate: Decimal = Decimal("0"),
        options: Optional[ProcessOptions] = None,
    ) -> IngestResult:
        """
        Process a URL and store it as an affiliate link for product_id.

        Tracking parameters are stripped first. A URL that is already
        stored is returned as-is. Unknown platforms and URLs that fail
        validation are not stored.
        """
        cleaned = clean_url(url)

        existing = await self.repository.find_link_by_original_url(cleaned)
        if existing is not None:
            return IngestResult(original_url=cleaned, link=existing)

        result = await self.process_url(cleaned, options)
        detection = result.platform_detection

        if not detection.is_known:
            return IngestResult(
                original_url=cleaned, result=result, skipped_reason="Unsupported platform"
            )
        if not result.is_valid:
            return IngestResult(
                original_url=cleaned,
                result=result,
                skipped_reason=result.validation.error or "Link validation failed",
            )

        platform = await self.repository.get_or_create_platform(detection.platform)
        link = await self.repository.create_affiliate_link(
            product_id=product_id,
            platform_id=platform.id,
            original_url=cleaned,
            shortened_url=result.shortened_url,
            short_code=result.short_code,
            commission_rate=commission_rate,
        )
        logger.info(f"Stored {detection.platform} link {link.id} for product {product_id}")
        return IngestResult(original_url=cleaned, result=result, link=link, created=True)

    async def _replacement_for(self, url: str) -> Optional[str]:
        detection = self.detector.detect(url)
        if not (detection.is_affiliate and detection.confidence > REPLACE_MIN_CONFIDENCE):
            return None

        existing = await self.repository.find_link_by_original_url(url)
        if existing is not None and existing.shortened_url:
            return existing.shortened_url
        return await self.shortener.create_short_url(url)

    async def replace_links_in_content(
        self, content: str, replacement_map: Optional[Mapping[str, str]] = None
    ) -> str:
        """
        Rewrite URLs in free text.

        Mapped URLs are replaced first. Remaining affiliate URLs get their
        stored shortened URL, or a new one. A URL that fails to resolve is
        left untouched.
        """
        replacement_map = replacement_map or {}
        replacements: dict[str, str] = {}

        for url in dict.fromkeys(URL_RE.findall(content)):
            if url in replacement_map:
                replacements[url] = replacement_map[url]
                continue
            try:
                replacement = await self._replacement_for(url)
            except Exception as e:
                logger.warning(f"Failed to process URL {url}: {e}")
                continue
            if replacement:
                replacements[url] = replacement

        if not replacements:
            return content
        return URL_RE.sub(lambda m: replacements.get(m.group(0), m.group(0)), content)
