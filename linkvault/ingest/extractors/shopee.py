"""Shopee product page adapter.

Shopee renders most content client-side, so meta tags and JSON-LD are
the primary sources.
"""

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
    META_PRICE,
    OG_DESCRIPTION,
    OG_IMAGES,
    OG_TITLE,
    SiteAdapter,
    ld_images,
    title_tag,
)

SHOPEE = SiteAdapter(
    name="shopee",
    title=(OG_TITLE, LD_NAME, title_tag(separator=" | ")),
    description=(OG_DESCRIPTION, LD_DESCRIPTION),
    price=(LD_PRICE, META_PRICE),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(OG_IMAGES, ld_images()),
    rating=(LD_RATING,),
    review_count=(LD_REVIEW_COUNT,),
    availability=(LD_AVAILABILITY,),
    brand=(LD_BRAND,),
)
