"""Tests for link validation."""

import asyncio
import time

import httpx
import pytest

from conftest import mock_client
from linkvault.ingest.link_validator import LinkValidator


@pytest.mark.asyncio
async def test_valid_link_uses_head():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200)

    async with mock_client(handler) as client:
        result = await LinkValidator(client=client).validate("https://www.amazon.com/dp/B08N5WRWNW")

    assert result.is_valid is True
    assert result.status == 200
    assert result.redirect_url is None
    assert result.error is None
    assert result.response_time_ms >= 0
    assert methods == ["HEAD"]


@pytest.mark.asyncio
async def test_redirect_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "amzn.to":
            return httpx.Response(301, headers={"Location": "https://www.amazon.com/dp/B08N5WRWNW"})
        return httpx.Response(200)

    async with mock_client(handler) as client:
        result = await LinkValidator(client=client).validate("https://amzn.to/3abcd")

    assert result.is_valid is True
    assert result.redirect_url == "https://www.amazon.com/dp/B08N5WRWNW"


@pytest.mark.asyncio
async def test_not_found_is_invalid():
    async with mock_client(lambda request: httpx.Response(404)) as client:
        result = await LinkValidator(client=client).validate("https://www.ebay.com/itm/123456789012")

    assert result.is_valid is False
    assert result.status == 404
    assert result.error == "HTTP 404"


@pytest.mark.asyncio
async def test_head_not_allowed_falls_back_to_get():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        if request.method == "HEAD":
            return httpx.Response(405)
        return httpx.Response(200, text="<html></html>")

    async with mock_client(handler) as client:
        result = await LinkValidator(client=client).validate("https://shopee.sg/item-i.1.2")

    assert result.is_valid is True
    assert result.status == 200
    assert methods == ["HEAD", "GET"]


@pytest.mark.asyncio
async def test_refused_connection_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async with mock_client(handler) as client:
        result = await LinkValidator(client=client).validate("https://127.0.0.1:1/")

    assert result.is_valid is False
    assert result.status == 0
    assert result.error
    assert "Connection refused" in result.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    ["not-a-url", "https://xn--.com/", "https://amazon.com/\udcff"],
    ids=["no-scheme", "bad-idna-host", "lone-surrogate"],
)
async def test_invalid_url_does_not_raise(url):
    async with mock_client(lambda request: httpx.Response(200)) as client:
        result = await LinkValidator(client=client).validate(url)

    assert result.is_valid is False
    assert result.status == 0
    assert result.error


@pytest.mark.asyncio
async def test_slow_server_is_cut_off_at_timeout():
    async def handler(request: httpx.Request) -> httpx.Response:
        # Headers trickle in far slower than the timeout allows
        await asyncio.sleep(3)
        return httpx.Response(200)

    async with mock_client(handler) as client:
        start = time.perf_counter()
        result = await LinkValidator(client=client, timeout=0.2).validate("https://www.amazon.com/dp/B08N5WRWNW")
        elapsed = time.perf_counter() - start

    assert elapsed < 1.5
    assert result.is_valid is False
    assert result.status == 0
    assert result.error == "Timed out after 0.2s"


@pytest.mark.asyncio
async def test_value_error_from_transport_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise UnicodeError("label empty or too long")

    async with mock_client(handler) as client:
        result = await LinkValidator(client=client).validate("https://www.amazon.com/dp/B08N5WRWNW")

    assert result.is_valid is False
    assert result.status == 0
    assert "UnicodeError" in result.error
