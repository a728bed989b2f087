"""Extract product data from embedded JSON-LD in HTML pages."""

import json
import logging
from typing import Any, Dict, List, Optional

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)


def extract_json_ld(tree: HTMLParser) -> List[Dict[str, Any]]:
    """
    Extract JSON-LD structured data from script tags.

    Top-level arrays and @graph containers are flattened, so the result
    is a list of JSON-LD objects.
    """
    results: List[Dict[str, Any]] = []
    for script in tree.css('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.text(deep=True) or "")
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping malformed JSON-LD block: {e}")
            continue

        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            graph = item.get("@graph")
            if isinstance(graph, list):
                results.extend(obj for obj in graph if isinstance(obj, dict))
            else:
                results.append(item)
    return results


def _type_names(obj: Dict[str, Any]) -> List[str]:
    obj_type = obj.get("@type", "")
    if isinstance(obj_type, list):
        return [str(t) for t in obj_type]
    return [str(obj_type)]


def find_product(json_ld_objects: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Return the first schema.org Product, or the first object carrying offers.
    """
    for obj in json_ld_objects:
        if "Product" in _type_names(obj):
            return obj
    for obj in json_ld_objects:
        if "offers" in obj:
            return obj
    return None


def first_offer(product: Dict[str, Any]) -> Dict[str, Any]:
    """Return the first offer dict; AggregateOffer and offer lists are handled."""
    offers = product.get("offers")
    if isinstance(offers, list):
        offers = next((o for o in offers if isinstance(o, dict)), None)
    return offers if isinstance(offers, dict) else {}


def offer_price(product: Dict[str, Any]) -> Optional[str]:
    offer = first_offer(product)
    for key in ("price", "lowPrice"):
        value = offer.get(key)
        if value not in (None, ""):
            return str(value)
    spec = offer.get("priceSpecification")
    if isinstance(spec, dict) and spec.get("price") not in (None, ""):
        return str(spec["price"])
    return None


def offer_currency(product: Dict[str, Any]) -> Optional[str]:
    offer = first_offer(product)
    currency = offer.get("priceCurrency")
    if not currency:
        spec = offer.get("priceSpecification")
        if isinstance(spec, dict):
            currency = spec.get("priceCurrency")
    return str(currency) if currency else None


def offer_availability(product: Dict[str, Any]) -> Optional[str]:
    """Map schema.org availability URLs like .../InStock to 'InStock'."""
    value = first_offer(product).get("availability")
    if not value:
        return None
    return str(value).rstrip("/").rsplit("/", 1)[-1]


def product_images(product: Dict[str, Any]) -> List[str]:
    image = product.get("image")
    if isinstance(image, str):
        return [image]
    images = []
    if isinstance(image, list):
        for item in image:
            if isinstance(item, str):
                images.append(item)
            elif isinstance(item, dict) and item.get("url"):
                images.append(str(item["url"]))
    elif isinstance(image, dict) and image.get("url"):
        images.append(str(image["url"]))
    return images


def product_brand(product: Dict[str, Any]) -> Optional[str]:
    brand = product.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")
    return str(brand) if brand else None


def product_rating(product: Dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Return (ratingValue, reviewCount) from aggregateRating."""
    rating = product.get("aggregateRating")
    if not isinstance(rating, dict):
        return None, None
    value = rating.get("ratingValue")
    count = rating.get("reviewCount") or rating.get("ratingCount")
    return (
        str(value) if value not in (None, "") else None,
        str(count) if count not in (None, "") else None,
    )
