"""Lightweight existence and redirect checks for affiliate URLs."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from linkvault.config import settings
from linkvault.ingest.http_client import (
    TRANSPORT_ERRORS,
    create_client,
    describe_error,
    is_http_url,
    timeout_message,
)
from linkvault import metrics

logger = logging.getLogger(__name__)

# Servers that refuse HEAD get one streamed GET instead
HEAD_NOT_ALLOWED = {405, 501}


@dataclass
class LinkValidationResult:
    """Outcome of a single validation request."""

    is_valid: bool
    status: int
    response_time_ms: float
    redirect_url: Optional[str] = None
    error: Optional[str] = None


class LinkValidator:
    """
    Issue HEAD requests and report reachability.

    validate() never raises: transport failures come back as
    is_valid=False, status=0 with an error message, which lets batch
    health checks tolerate individual failures.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_client(
                user_agent=settings.validator_user_agent,
                timeout=self.timeout,
            )
        return self._client

    async def close(self):
        """Close the HTTP client if this validator created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _get_status(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        response = await client.head(url, follow_redirects=True, timeout=self.timeout)
        if response.status_code in HEAD_NOT_ALLOWED:
            logger.debug(f"HEAD not allowed for {url}, retrying with GET")
            async with client.stream(
                "GET", url, follow_redirects=True, timeout=self.timeout
            ) as streamed:
                return streamed
        return response

    async def validate(self, url: str) -> LinkValidationResult:
        """Check a URL with a HEAD request, following redirects."""
        if not is_http_url(url):
            metrics.record_validation(False, 0.0)
            return LinkValidationResult(
                is_valid=False, status=0, response_time_ms=0.0, error=f"Invalid URL: {url!r}"
            )

        start = time.perf_counter()
        try:
            # httpx timeouts are per read; this caps the whole exchange
            response = await asyncio.wait_for(
                self._get_status(self._get_client(), url), timeout=self.timeout
            )
        except (TRANSPORT_ERRORS + (asyncio.TimeoutError,)) as e:
            elapsed = time.perf_counter() - start
            if isinstance(e, asyncio.TimeoutError):
                error = timeout_message(self.timeout)
            else:
                error = describe_error(e)
            logger.info(f"Validation failed for {url}: {error}")
            metrics.record_validation(False, elapsed)
            return LinkValidationResult(
                is_valid=False,
                status=0,
                response_time_ms=elapsed * 1000,
                error=error,
            )

        elapsed = time.perf_counter() - start
        is_valid = response.is_success
        metrics.record_validation(is_valid, elapsed)

        return LinkValidationResult(
            is_valid=is_valid,
            status=response.status_code,
            response_time_ms=elapsed * 1000,
            redirect_url=str(response.url) if response.history else None,
            error=None if is_valid else f"HTTP {response.status_code}",
        )


async def validate_link(url: str) -> LinkValidationResult:
    """Validate a single URL with a short-lived client."""
    async with LinkValidator() as validator:
        return await validator.validate(url)
