"""eBay listing page adapter."""

from linkvault.ingest.extractors.base import (
    LD_AVAILABILITY,
    LD_BRAND,
    LD_CURRENCY,
    LD_NAME,
    LD_PRICE,
    META_CURRENCY,
    OG_DESCRIPTION,
    OG_IMAGES,
    OG_TITLE,
    SiteAdapter,
    attrs,
    combined,
    text,
)

EBAY = SiteAdapter(
    name="ebay",
    title=(
        text("h1.x-item-title__mainTitle"),
        text("#x-title-label-lbl"),
        text("h1#it-ttl"),
        OG_TITLE,
        LD_NAME,
    ),
    description=(
        text(".x-item-condition-text"),
        text(".u-flL.condText"),
        OG_DESCRIPTION,
    ),
    price=(
        text(".x-price-primary"),
        text("#prcIsum"),
        text("#mm-saleDscPrc"),
        LD_PRICE,
    ),
    original_price=(text(".x-additional-info__textual-display"),),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(
        combined(attrs("#icImg", "src"), OG_IMAGES),
        attrs(".ux-image-carousel-item img", "src"),
    ),
    availability=(text(".d-quantity__availability"), LD_AVAILABILITY),
    brand=(LD_BRAND,),
)
