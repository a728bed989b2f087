"""AliExpress product page adapter."""

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

ALIEXPRESS = SiteAdapter(
    name="aliexpress",
    title=(OG_TITLE, text("h1"), LD_NAME),
    description=(OG_DESCRIPTION, LD_DESCRIPTION),
    price=(
        text(".product-price-current"),
        text(".uniform-banner-box-price"),
        LD_PRICE,
    ),
    original_price=(text(".product-price-original"),),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(OG_IMAGES, ld_images()),
    rating=(text(".overview-rating-average"), LD_RATING),
    review_count=(text(".product-reviewer-reviews"), LD_REVIEW_COUNT),
    availability=(LD_AVAILABILITY,),
    brand=(LD_BRAND,),
)
