"""Parse scraped price text into amounts and currencies."""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

# Multi-character symbols are checked before "$"
CURRENCY_SYMBOLS: dict[str, str] = {
    "US$": "USD",
    "NT$": "TWD",
    "S$": "SGD",
    "A$": "AUD",
    "C$": "CAD",
    "RM": "MYR",
    "Rp": "IDR",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₽": "RUB",
    "₱": "PHP",
    "฿": "THB",
    "₫": "VND",
    "₩": "KRW",
}

ISO_CODES = frozenset({
    "USD", "EUR", "GBP", "JPY", "INR", "RUB", "PHP", "THB", "VND", "MYR", "IDR",
    "SGD", "TWD", "AUD", "CAD", "CNY", "KRW", "HKD", "CHF", "NZD", "MXN", "BRL",
})

_ISO_RE = re.compile(r"\b([A-Z]{3})\b")
_NUMBER_RE = re.compile(r"\d[\d.,]*")


@dataclass
class PriceInfo:
    """Parsed price with optional strikethrough price."""

    current: Decimal
    currency: str = DEFAULT_CURRENCY
    original: Optional[Decimal] = None


def detect_currency(text: str) -> Optional[str]:
    """Find an ISO code or currency symbol in text."""
    if not text:
        return None
    for code in _ISO_RE.findall(text):
        if code in ISO_CODES:
            return code
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    return None


def _normalize_separators(number: str) -> str:
    """Turn '1,299.99', '1.299,99', '12,99' or '1,299' into a plain decimal string."""
    number = number.strip(".,")
    has_dot = "." in number
    has_comma = "," in number

    if has_dot and has_comma:
        decimal_sep = "." if number.rfind(".") > number.rfind(",") else ","
        thousands_sep = "," if decimal_sep == "." else "."
        return number.replace(thousands_sep, "").replace(decimal_sep, ".")

    if has_dot or has_comma:
        sep = "." if has_dot else ","
        parts = number.split(sep)
        # Repeated separator, or a single one after a non-zero group followed by
        # exactly three digits, is grouping (0.999 stays a decimal)
        if len(parts) > 2 or (len(parts[-1]) == 3 and parts[0].lstrip("0") != ""):
            return "".join(parts)
        return number.replace(sep, ".")

    return number


def parse_amount(text: Optional[str]) -> Optional[Decimal]:
    """Extract the first numeric amount from text."""
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    try:
        return Decimal(_normalize_separators(match.group(0)))
    except InvalidOperation:
        logger.debug(f"Could not parse amount from {text!r}")
        return None


def parse_price(
    price_text: Optional[str],
    original_price_text: Optional[str] = None,
    currency_hint: Optional[str] = None,
) -> Optional[PriceInfo]:
    """
    Parse price text into a PriceInfo.

    Currency is taken from the price text first, then currency_hint,
    then defaults to USD. A zero or missing current price yields None.
    The original price is kept only when it is above the current price.
    """
    current = parse_amount(price_text)
    if current is None or current <= 0:
        return None

    currency = detect_currency(price_text) or (currency_hint or "").strip().upper() or DEFAULT_CURRENCY

    original = parse_amount(original_price_text)
    if original is not None and original <= current:
        original = None

    return PriceInfo(current=current, currency=currency, original=original)
