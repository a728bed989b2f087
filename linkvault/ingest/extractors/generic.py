"""Generic adapter for platforms without a dedicated adapter."""

from linkvault.ingest.extractors.base import (
    LD_AVAILABILITY,
    LD_BRAND,
    LD_CATEGORY,
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
    text,
    title_tag,
)

GENERIC = SiteAdapter(
    name="generic",
    title=(OG_TITLE, title_tag(), text("h1"), LD_NAME),
    description=(OG_DESCRIPTION, LD_DESCRIPTION),
    price=(LD_PRICE, META_PRICE),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(OG_IMAGES, ld_images()),
    rating=(LD_RATING,),
    review_count=(LD_REVIEW_COUNT,),
    availability=(LD_AVAILABILITY,),
    brand=(LD_BRAND,),
    category=(LD_CATEGORY,),
)
