"""Amazon product page adapter."""

import re

from linkvault.ingest.extractors.base import (
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
    attr,
    attrs,
    combined,
    joined_text,
    mapped,
    text,
)

# Size/crop suffixes such as ._AC_SX300_ or ._SY879_ before the extension
_IMAGE_SIZE_RE = re.compile(r"\._[A-Za-z0-9,_-]+_(?=\.[A-Za-z]+$)")
_BYLINE_RE = re.compile(r"^(?:Brand:\s*|Visit the\s+)|\s+Store$")


def clean_image_url(url: str) -> str:
    """Drop Amazon's size suffix so the full-resolution image is returned."""
    return _IMAGE_SIZE_RE.sub("", url)


def clean_byline(value: str) -> str:
    return _BYLINE_RE.sub("", value.strip())


AMAZON = SiteAdapter(
    name="amazon",
    title=(
        text("#productTitle"),
        text("h1.a-size-large"),
        text("h1 span"),
        OG_TITLE,
        LD_NAME,
    ),
    description=(
        joined_text("#feature-bullets ul li span"),
        text("#productDescription p"),
        OG_DESCRIPTION,
        LD_DESCRIPTION,
    ),
    price=(
        text(".a-price-current .a-offscreen"),
        text("#corePrice_feature_div .a-price .a-offscreen"),
        text(".priceToPay .a-offscreen"),
        text(".a-price .a-offscreen"),
        text("#priceblock_dealprice"),
        text("#priceblock_ourprice"),
        LD_PRICE,
    ),
    original_price=(
        text(".a-price.a-text-price .a-offscreen"),
        text(".basisPrice .a-offscreen"),
        text("#priceblock_listprice"),
    ),
    currency=(LD_CURRENCY, META_CURRENCY),
    images=(
        combined(attrs("#landingImage", "src"), attrs("#altImages img", "src")),
        OG_IMAGES,
    ),
    rating=(
        text("#acrPopover .a-icon-alt"),
        attr("#acrPopover", "title"),
        LD_RATING,
    ),
    review_count=(
        text("#acrCustomerReviewText"),
        LD_REVIEW_COUNT,
    ),
    availability=(
        text("#availability span"),
        text("#merchant-info"),
    ),
    brand=(
        mapped(text("#bylineInfo"), clean_byline),
        LD_BRAND,
    ),
    category=(
        joined_text("#wayfinding-breadcrumbs_feature_div ul li a", sep=" > "),
    ),
    image_cleaner=clean_image_url,
)
