"""Lazada product page adapter."""

from linkvault.ingest.extractors.base import (
    LD_AVAILABILITY,
    LD_BRAND,
    LD_CURRENCY,
    LD_DESCRIPTION,
    LD_NAME,
    LD_PRICE,
    LD_RATING,
    LD_REVIEW_COUNT,
    META_CURRENCY,
    OG_DESCRIPTION,
    OG_IMAGES,
    OG_TITLE,
    SiteAdapter,
    ld_images,
    text,
)

LAZADA = SiteAdapter(
    name="lazada",
    title=(OG_TITLE, text("h1.pdp-mod-product-badge-title"), text("h1"), LD_NAME),
    description=(OG_DESCRIPTION, text(".pdp-product-desc"), LD_DESCRIPTION),
    price=(text(".pdp-price_current"), text(".price-current"), LD_PRICE),
    original_price=(text(".pdp-price_original"), text(".price-original")),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(OG_IMAGES, ld_images()),
    rating=(text(".score-average"), LD_RATING),
    review_count=(text(".pdp-review-summary__link"), text(".count"), LD_REVIEW_COUNT),
    availability=(LD_AVAILABILITY,),
    brand=(text(".pdp-product-brand__brand-link"), LD_BRAND),
)
