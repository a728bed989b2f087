"""Tests for the URL ingestion pipeline."""

import re
from decimal import Decimal

import httpx
import pytest

from conftest import html_response, make_link, mock_client
from linkvault.ingest.link_validator import LinkValidator
from linkvault.ingest.pipeline import LinkProcessor, ProcessOptions
from linkvault.ingest.product_extractor import ProductExtractor
from linkvault.ingest.shortener import URLShortener

PRODUCT_HTML = """
<html><head><meta property="og:title" content="Echo Dot"></head>
<body><span id="productTitle">Echo Dot</span>
<div class="a-price-current"><span class="a-offscreen">$49.99</span></div></body></html>
"""


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host.startswith("dead") or "dead" in request.url.path:
        return httpx.Response(404)
    if request.method == "HEAD":
        return httpx.Response(200)
    return html_response(PRODUCT_HTML)


@pytest.fixture
def processor(repository):
    client = mock_client(_handler)
    return LinkProcessor(
        repository,
        extractor=ProductExtractor(client=client),
        validator=LinkValidator(client=client),
        shortener=URLShortener(repository.short_code_exists, base_url="https://lv.example"),
    )


@pytest.mark.asyncio
async def test_process_url_runs_every_stage(processor):
    result = await processor.process_url("https://www.amazon.com/dp/B08N5WRWNW?tag=aff-20")

    assert result.platform_detection.platform == "amazon"
    assert result.validation.is_valid is True
    assert result.product_info.info.title == "Echo Dot"
    assert result.product_info.info.price.current == Decimal("49.99")
    assert re.fullmatch(r"https://lv\.example/l/[A-Za-z0-9]{8}", result.shortened_url)
    assert result.short_code == result.shortened_url.rsplit("/", 1)[1]


@pytest.mark.asyncio
async def test_extraction_skipped_when_validation_fails(processor):
    result = await processor.process_url("https://www.amazon.com/dead/dp/B08N5WRWNW")

    assert result.validation.is_valid is False
    assert result.product_info is None


@pytest.mark.asyncio
async def test_options_disable_stages(processor):
    options = ProcessOptions(extract_product_info=False, validate_link=False, create_short_url=False)

    result = await processor.process_url("https://www.ebay.com/itm/123456789012", options)

    assert result.validation is None
    assert result.product_info is None
    assert result.shortened_url is None
    assert result.platform_detection.product_id == "123456789012"


@pytest.mark.asyncio
async def test_bulk_isolates_failures_and_sleeps_between_batches(processor, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("linkvault.ingest.pipeline.asyncio.sleep", fake_sleep)

    original = processor.process_url

    async def flaky(url, options=None):
        if url.endswith("boom"):
            raise RuntimeError("exploded")
        return await original(url, options)

    monkeypatch.setattr(processor, "process_url", flaky)

    urls = [f"https://www.ebay.com/itm/12345678901{i}" for i in range(4)] + ["https://x.example/boom"]
    options = ProcessOptions(extract_product_info=False, create_short_url=False)
    results = await processor.bulk_process_urls(urls, options, batch_size=2, delay_seconds=0.5)

    assert [r.original_url for r in results] == urls
    assert [r.ok for r in results] == [True, True, True, True, False]
    assert results[-1].error == "exploded"
    # Three batches, so two pauses and none after the last
    assert sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_ingest_link_stores_cleaned_url(processor, repository):
    result = await processor.ingest_link(
        "https://www.amazon.com/dp/B08N5WRWNW?tag=aff-20&utm_source=mail",
        product_id="product-9",
        commission_rate=Decimal("0.04"),
    )

    assert result.created is True
    link = result.link
    assert link.original_url == "https://www.amazon.com/dp/B08N5WRWNW?tag=aff-20"
    assert link.product_id == "product-9"
    assert link.platform_id == "platform-amazon"
    assert link.commission_rate == Decimal("0.04")
    assert link.short_code and link.shortened_url.endswith(link.short_code)
    assert "amazon" in repository.platforms


@pytest.mark.asyncio
async def test_ingest_link_returns_existing(processor, repository):
    existing = make_link("L1", "https://www.amazon.com/dp/B08N5WRWNW")
    repository.add(existing)

    result = await processor.ingest_link("https://www.amazon.com/dp/B08N5WRWNW?utm_source=x", "p")

    assert result.created is False
    assert result.link is existing


@pytest.mark.asyncio
async def test_ingest_link_skips_invalid_and_unknown(processor, repository):
    dead = await processor.ingest_link("https://www.amazon.com/dead/dp/B08N5WRWNW", "p")
    unknown = await processor.ingest_link("https://shop.example.com/item/1", "p")

    assert dead.created is False and dead.skipped_reason == "HTTP 404"
    assert unknown.created is False and unknown.skipped_reason == "Unsupported platform"
    assert repository.links == {}


@pytest.mark.asyncio
async def test_replace_links_in_content(processor, repository):
    repository.add(
        make_link(
            "L1",
            "https://www.amazon.com/dp/B08N5WRWNW?tag=aff-20",
            shortened_url="https://lv.example/l/known123",
            short_code="known123",
        )
    )
    content = (
        "Buy it: https://www.amazon.com/dp/B08N5WRWNW?tag=aff-20 now. "
        "Also https://www.ebay.com/itm/123456789012?campid=5338 and "
        "https://blog.example/post and https://mapped.example/a"
    )

    replaced = await processor.replace_links_in_content(
        content, {"https://mapped.example/a": "https://lv.example/l/mapped"}
    )

    assert "https://lv.example/l/known123 now." in replaced
    assert "https://www.ebay.com/itm/" not in replaced
    assert re.search(r"https://lv\.example/l/[A-Za-z0-9]{8} and", replaced)
    assert "https://blog.example/post" in replaced
    assert replaced.endswith("https://lv.example/l/mapped")


@pytest.mark.asyncio
async def test_replace_leaves_url_untouched_on_failure(processor, monkeypatch):
    async def broken(url, custom_domain=None, custom_slug=None):
        raise RuntimeError("shortener down")

    monkeypatch.setattr(processor.shortener, "create_short_url", broken)
    content = "See https://www.ebay.com/itm/123456789012?campid=5338"

    assert await processor.replace_links_in_content(content) == content
