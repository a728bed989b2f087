"""Building blocks for per-site product extraction adapters.

An adapter is a SiteAdapter value: for every product field it holds an
ordered chain of sources (DOM selectors, meta tags, JSON-LD lookups).
Sources are tried in order and the first non-empty value wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from linkvault.ingest import json_extractor
from linkvault.normalize.price import PriceInfo, parse_price

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_FLOAT_RE = re.compile(r"\d+(?:[.,]\d+)?")
_INT_RE = re.compile(r"\d[\d,.\s]*")


@dataclass
class ProductInfo:
    """Best-effort product data; every field is optional."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[PriceInfo] = None
    images: Optional[List[str]] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    availability: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in vars(self).values())


class Page:
    """Parsed HTML document plus lazily extracted JSON-LD product."""

    def __init__(self, html: str, url: str = ""):
        self.tree = HTMLParser(html)
        self.url = url

    @cached_property
    def json_ld(self) -> List[Dict[str, Any]]:
        return json_extractor.extract_json_ld(self.tree)

    @cached_property
    def product_ld(self) -> Dict[str, Any]:
        return json_extractor.find_product(self.json_ld) or {}


Source = Callable[[Page], Optional[str]]
ListSource = Callable[[Page], List[str]]


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = _WHITESPACE_RE.sub(" ", value).strip()
    return value or None


# --------------------------------------------------------------------------
# Source constructors
# --------------------------------------------------------------------------

def text(selector: str) -> Source:
    """Text of the first element matching selector."""
    def source(page: Page) -> Optional[str]:
        node = page.tree.css_first(selector)
        return clean_text(node.text(deep=True)) if node else None
    return source


def joined_text(selector: str, sep: str = " ") -> Source:
    """Text of every matching element, joined."""
    def source(page: Page) -> Optional[str]:
        parts = [clean_text(n.text(deep=True)) for n in page.tree.css(selector)]
        return clean_text(sep.join(p for p in parts if p))
    return source


def attr(selector: str, name: str) -> Source:
    """Attribute value of the first matching element."""
    def source(page: Page) -> Optional[str]:
        node = page.tree.css_first(selector)
        return clean_text(node.attributes.get(name)) if node else None
    return source


def attrs(selector: str, name: str) -> ListSource:
    """Attribute values of every matching element."""
    def source(page: Page) -> List[str]:
        values = [clean_text(n.attributes.get(name)) for n in page.tree.css(selector)]
        return [v for v in values if v]
    return source


def meta(*names: str) -> Source:
    """Content of a meta tag by property= or name= (Open Graph, Twitter, product:)."""
    def source(page: Page) -> Optional[str]:
        for name in names:
            for key in ("property", "name", "itemprop"):
                node = page.tree.css_first(f'meta[{key}="{name}"]')
                if node:
                    content = clean_text(node.attributes.get("content"))
                    if content:
                        return content
        return None
    return source


def meta_list(*names: str) -> ListSource:
    single = meta(*names)

    def source(page: Page) -> List[str]:
        value = single(page)
        return [value] if value else []
    return source


def title_tag(separator: Optional[str] = None) -> Source:
    """<title> text, optionally cut at a site-name separator."""
    def source(page: Page) -> Optional[str]:
        node = page.tree.css_first("title")
        value = clean_text(node.text()) if node else None
        if value and separator:
            value = clean_text(value.split(separator)[0])
        return value
    return source


def ld(getter: Callable[[Dict[str, Any]], Any]) -> Source:
    """A value from the page's JSON-LD Product object."""
    def source(page: Page) -> Optional[str]:
        product = page.product_ld
        if not product:
            return None
        value = getter(product)
        return clean_text(str(value)) if value not in (None, "") else None
    return source


def ld_images() -> ListSource:
    def source(page: Page) -> List[str]:
        return json_extractor.product_images(page.product_ld) if page.product_ld else []
    return source


def combined(*sources: ListSource) -> ListSource:
    """Concatenate several list sources (e.g. main image plus thumbnails)."""
    def source(page: Page) -> List[str]:
        values: List[str] = []
        for src in sources:
            values.extend(src(page))
        return values
    return source


def mapped(source: Source, fn: Callable[[str], Optional[str]]) -> Source:
    def wrapped(page: Page) -> Optional[str]:
        value = source(page)
        return clean_text(fn(value)) if value else None
    return wrapped


# Fallback tiers shared by every adapter
LD_PRICE = ld(json_extractor.offer_price)
LD_CURRENCY = ld(json_extractor.offer_currency)
LD_AVAILABILITY = ld(json_extractor.offer_availability)
LD_BRAND = ld(json_extractor.product_brand)
LD_RATING = ld(lambda p: json_extractor.product_rating(p)[0])
LD_REVIEW_COUNT = ld(lambda p: json_extractor.product_rating(p)[1])
LD_NAME = ld(lambda p: p.get("name"))
LD_DESCRIPTION = ld(lambda p: p.get("description"))
LD_CATEGORY = ld(lambda p: p.get("category"))

OG_TITLE = meta("og:title", "twitter:title")
OG_DESCRIPTION = meta("og:description", "twitter:description", "description")
OG_IMAGES = meta_list("og:image", "twitter:image")
META_PRICE = meta("product:price:amount", "og:price:amount", "price")
META_CURRENCY = meta("product:price:currency", "og:price:currency", "priceCurrency")


# --------------------------------------------------------------------------
# Value parsing
# --------------------------------------------------------------------------

def parse_rating(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = _FLOAT_RE.search(value)
    if not match:
        return None
    rating = float(match.group(0).replace(",", "."))
    return rating if rating > 0 else None


def parse_count(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = _INT_RE.search(value)
    if not match:
        return None
    digits = re.sub(r"\D", "", match.group(0))
    count = int(digits) if digits else 0
    return count if count > 0 else None


def _first(sources: Sequence[Source], page: Page, field_name: str) -> Optional[str]:
    for index, source in enumerate(sources):
        try:
            value = source(page)
        except Exception as e:
            logger.debug(f"Source {index + 1}/{len(sources)} for {field_name} failed: {e}")
            continue
        if value:
            return value
    return None


def _first_list(sources: Sequence[ListSource], page: Page) -> List[str]:
    for index, source in enumerate(sources):
        try:
            values = source(page)
        except Exception as e:
            logger.debug(f"Image source {index + 1}/{len(sources)} failed: {e}")
            continue
        if values:
            return values
    return []


@dataclass(frozen=True)
class SiteAdapter:
    """Ordered field sources for one platform."""

    name: str
    title: Sequence[Source] = ()
    description: Sequence[Source] = ()
    price: Sequence[Source] = ()
    original_price: Sequence[Source] = ()
    currency: Sequence[Source] = ()
    images: Sequence[ListSource] = ()
    rating: Sequence[Source] = ()
    review_count: Sequence[Source] = ()
    availability: Sequence[Source] = ()
    brand: Sequence[Source] = ()
    category: Sequence[Source] = ()
    image_cleaner: Optional[Callable[[str], str]] = field(default=None, compare=False)

    def extract(self, page: Page) -> ProductInfo:
        """Run every field chain against the page."""
        price: Optional[PriceInfo] = parse_price(
            _first(self.price, page, "price"),
            _first(self.original_price, page, "original_price"),
            _first(self.currency, page, "currency"),
        )

        images = []
        for url in _first_list(self.images, page):
            if page.url:
                url = urljoin(page.url, url)
            if self.image_cleaner:
                url = self.image_cleaner(url)
            if url not in images:
                images.append(url)

        return ProductInfo(
            title=_first(self.title, page, "title"),
            description=_first(self.description, page, "description"),
            price=price,
            images=images or None,
            rating=parse_rating(_first(self.rating, page, "rating")),
            review_count=parse_count(_first(self.review_count, page, "review_count")),
            availability=_first(self.availability, page, "availability"),
            brand=_first(self.brand, page, "brand"),
            category=_first(self.category, page, "category"),
        )
