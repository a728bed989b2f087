"""Platform detection from product URLs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urlparse, urlunparse

from linkvault.config import settings
from linkvault import metrics

logger = logging.getLogger(__name__)

UNKNOWN_PLATFORM = "unknown"


@dataclass(frozen=True)
class PlatformPattern:
    """Domain and URL patterns for one e-commerce platform."""

    key: str
    display_name: str
    domains: tuple[str, ...]
    product_id_patterns: tuple[str, ...]
    affiliate_params: tuple[str, ...]

    @property
    def base_url(self) -> str:
        return f"https://{self.domains[0]}"


@dataclass(frozen=True)
class PlatformDetectionResult:
    """Result of classifying a URL."""

    platform: str
    product_id: Optional[str] = None
    is_affiliate: bool = False
    confidence: float = 0.0

    @property
    def is_known(self) -> bool:
        return self.platform != UNKNOWN_PLATFORM


PLATFORMS: dict[str, PlatformPattern] = {
    "amazon": PlatformPattern(
        key="amazon",
        display_name="Amazon",
        domains=(
            "amazon.com", "amazon.co.uk", "amazon.de", "amazon.fr", "amazon.it",
            "amazon.es", "amazon.ca", "amazon.com.au", "amazon.co.jp", "amzn.to",
        ),
        product_id_patterns=(
            r"/dp/([A-Z0-9]{10})",
            r"/gp/product/([A-Z0-9]{10})",
            r"/gp/aw/d/([A-Z0-9]{10})",
        ),
        affiliate_params=("tag", "linkCode", "ref", "ref_"),
    ),
    "shopee": PlatformPattern(
        key="shopee",
        display_name="Shopee",
        domains=(
            "shopee.com", "shopee.sg", "shopee.com.my", "shopee.ph", "shopee.co.th",
            "shopee.vn", "shopee.tw", "shopee.co.id",
        ),
        # shop id and item id together identify a listing
        product_id_patterns=(
            r"-i\.(\d+\.\d+)",
            r"/product/(\d+/\d+)",
        ),
        affiliate_params=("af_siteid", "pid", "af_click_lookback"),
    ),
    "lazada": PlatformPattern(
        key="lazada",
        display_name="Lazada",
        domains=(
            "lazada.com", "lazada.sg", "lazada.com.my", "lazada.com.ph", "lazada.co.th",
            "lazada.vn", "lazada.co.id",
        ),
        product_id_patterns=(
            r"/products/[^?#]*-i(\d+)",
        ),
        affiliate_params=("aff_short_key", "aff_platform", "aff_trace_key"),
    ),
    "aliexpress": PlatformPattern(
        key="aliexpress",
        display_name="AliExpress",
        domains=("aliexpress.com", "aliexpress.us"),
        product_id_patterns=(
            r"/item/(\d+)\.html",
        ),
        affiliate_params=("aff_platform", "aff_trace_key", "terminal_id"),
    ),
    "ebay": PlatformPattern(
        key="ebay",
        display_name="eBay",
        domains=(
            "ebay.com", "ebay.co.uk", "ebay.de", "ebay.fr", "ebay.it", "ebay.es",
            "ebay.ca", "ebay.com.au",
        ),
        product_id_patterns=(
            r"/itm/(?:[^/?#]+/)?(\d{9,})",
        ),
        affiliate_params=("campid", "customid", "toolid"),
    ),
}

TRACKING_PARAMS = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "fbclid", "gclid", "msclkid", "twclid",
    "_ga", "_gl", "mc_cid", "mc_eid",
})


def _host_matches(hostname: str, domain: str) -> bool:
    return hostname == domain or hostname.endswith("." + domain)


def _parse_http_url(url):
    """Return (parsed, hostname) or None when url is not a usable http(s) URL."""
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not hostname:
        return None
    return parsed, hostname.lower()


class PlatformDetector:
    """
    Classify URLs by registered platform domain and URL patterns.

    Confidence starts at base_confidence on a domain match, rises to
    pattern_confidence when a product id is extracted, and gains
    affiliate_bonus (capped at 1.0) when an affiliate parameter is present.
    """

    def __init__(
        self,
        platforms: dict[str, PlatformPattern] | None = None,
        base_confidence: float | None = None,
        pattern_confidence: float | None = None,
        affiliate_bonus: float | None = None,
    ):
        self.platforms = platforms if platforms is not None else PLATFORMS
        self.base_confidence = (
            settings.detection_base_confidence if base_confidence is None else base_confidence
        )
        self.pattern_confidence = (
            settings.detection_pattern_confidence if pattern_confidence is None else pattern_confidence
        )
        self.affiliate_bonus = (
            settings.detection_affiliate_bonus if affiliate_bonus is None else affiliate_bonus
        )
        self._compiled = {
            key: [re.compile(p, re.IGNORECASE) for p in pattern.product_id_patterns]
            for key, pattern in self.platforms.items()
        }

    def detect(self, url: str) -> PlatformDetectionResult:
        """Classify a URL. Never raises; unusable input resolves to unknown."""
        parsed_host = _parse_http_url(url)
        if parsed_host is None:
            return PlatformDetectionResult(platform=UNKNOWN_PLATFORM)
        parsed, hostname = parsed_host

        for key, pattern in self.platforms.items():
            if not any(_host_matches(hostname, d) for d in pattern.domains):
                continue

            confidence = self.base_confidence
            product_id = None
            for regex in self._compiled[key]:
                match = regex.search(url)
                if match:
                    product_id = match.group(1)
                    confidence = self.pattern_confidence
                    break

            query = parse_qs(parsed.query, keep_blank_values=True)
            is_affiliate = any(param in query for param in pattern.affiliate_params)
            if is_affiliate:
                confidence += self.affiliate_bonus

            metrics.record_detection(key)
            return PlatformDetectionResult(
                platform=key,
                product_id=product_id,
                is_affiliate=is_affiliate,
                confidence=max(0.0, min(confidence, 1.0)),
            )

        metrics.record_detection(UNKNOWN_PLATFORM)
        return PlatformDetectionResult(platform=UNKNOWN_PLATFORM)

    def get_pattern(self, platform: str) -> Optional[PlatformPattern]:
        return self.platforms.get(platform)


def detect_platform(url: str) -> PlatformDetectionResult:
    """Classify a URL with the default platform table."""
    return PlatformDetector().detect(url)


def clean_url(url: str) -> str:
    """Strip common tracking parameters, keeping everything else intact."""
    parsed_host = _parse_http_url(url)
    if parsed_host is None:
        return url
    parsed, _ = parsed_host
    query = [
        (k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def extract_affiliate_params(url: str) -> dict[str, str]:
    """Return every known affiliate parameter present in the URL."""
    parsed_host = _parse_http_url(url)
    if parsed_host is None:
        return {}
    parsed, _ = parsed_host
    known = {param for pattern in PLATFORMS.values() for param in pattern.affiliate_params}
    known.add("linkId")
    params = {}
    for key, value in parse_qsl(parsed.query):
        if key in known and value:
            params[key] = value
    return params
