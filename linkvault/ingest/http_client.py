"""Shared HTTP client construction for outbound product and validation requests."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx

from linkvault.config import settings

logger = logging.getLogger(__name__)

# Transport-level failures: DNS, refused connections, TLS, timeouts, bad URLs.
# ValueError covers UnicodeError and IDNA failures raised while encoding a host.
TRANSPORT_ERRORS = (
    httpx.HTTPError,
    httpx.InvalidURL,
    ValueError,
)


def default_headers(user_agent: Optional[str] = None) -> dict[str, str]:
    """Get default browser-like headers."""
    return {
        "User-Agent": user_agent or settings.extraction_user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def default_timeout(seconds: Optional[float] = None) -> httpx.Timeout:
    """Single hard timeout applied to connect, read, write and pool."""
    return httpx.Timeout(seconds if seconds is not None else settings.request_timeout_seconds)


def create_client(
    user_agent: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create an AsyncClient for third-party origins.

    Args:
        user_agent: Overrides the configured desktop User-Agent
        timeout: Overrides settings.request_timeout_seconds
        transport: Optional transport (tests pass httpx.MockTransport)
    """
    return httpx.AsyncClient(
        headers=default_headers(user_agent),
        timeout=default_timeout(timeout),
        follow_redirects=True,
        transport=transport,
    )


def describe_error(exc: BaseException) -> str:
    """Human-readable message for a transport failure."""
    message = str(exc).strip()
    name = type(exc).__name__
    if not message:
        return name
    return f"{name}: {message}"


def is_http_url(url) -> bool:
    """True for an absolute http(s) URL with a host."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlsplit(url.strip())
        host = parsed.hostname
        if parsed.scheme.lower() not in ("http", "https") or not host:
            return False
        # Rejects hosts httpx cannot encode (bad IDNA, lone surrogates)
        httpx.URL(url.strip()).host
        url.encode("utf-8")
    except (httpx.InvalidURL, ValueError):
        return False
    return True


def timeout_message(seconds: float) -> str:
    return f"Timed out after {seconds:g}s"
