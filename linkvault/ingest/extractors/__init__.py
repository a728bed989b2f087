"""Per-platform product extraction adapters."""

from __future__ import annotations

from linkvault.ingest.extractors.base import Page, ProductInfo, SiteAdapter
from linkvault.ingest.extractors.aliexpress import ALIEXPRESS
from linkvault.ingest.extractors.amazon import AMAZON
from linkvault.ingest.extractors.ebay import EBAY
from linkvault.ingest.extractors.generic import GENERIC
from linkvault.ingest.extractors.lazada import LAZADA
from linkvault.ingest.extractors.shopee import SHOPEE


ADAPTERS: dict[str, SiteAdapter] = {
    "amazon": AMAZON,
    "shopee": SHOPEE,
    "lazada": LAZADA,
    "aliexpress": ALIEXPRESS,
    "ebay": EBAY,
}


def get_adapter_for_platform(platform: str | None) -> SiteAdapter:
    """Return the adapter for a platform key, or the generic adapter."""
    if not platform:
        return GENERIC
    return ADAPTERS.get(platform.lower(), GENERIC)


__all__ = [
    "ADAPTERS",
    "GENERIC",
    "Page",
    "ProductInfo",
    "SiteAdapter",
    "get_adapter_for_platform",
]
