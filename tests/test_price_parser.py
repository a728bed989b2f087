"""Tests for price text parsing."""

from decimal import Decimal

import pytest

from linkvault.normalize.price import detect_currency, parse_amount, parse_price


@pytest.mark.parametrize(
    "text, expected",
    [
        ("$19.99", Decimal("19.99")),
        ("$1,299.99", Decimal("1299.99")),
        ("€1.299,99", Decimal("1299.99")),
        ("12,99 €", Decimal("12.99")),
        ("1,299", Decimal("1299")),
        ("Rp 1.500.000", Decimal("1500000")),
        ("Price: 45", Decimal("45")),
        ("$0.999", Decimal("0.999")),
        ("0,500 €", Decimal("0.500")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


def test_parse_amount_without_digits():
    assert parse_amount("Currently unavailable") is None
    assert parse_amount(None) is None


@pytest.mark.parametrize(
    "text, currency",
    [
        ("$10", "USD"),
        ("US$ 10", "USD"),
        ("€10", "EUR"),
        ("£10", "GBP"),
        ("¥1000", "JPY"),
        ("₹499", "INR"),
        ("₽990", "RUB"),
        ("₱1,299.00", "PHP"),
        ("฿590", "THB"),
        ("₫250.000", "VND"),
        ("RM 39.90", "MYR"),
        ("Rp 150.000", "IDR"),
        ("S$25.90", "SGD"),
        ("10.00 EUR", "EUR"),
    ],
)
def test_detect_currency(text, currency):
    assert detect_currency(text) == currency


def test_parse_price_with_original():
    price = parse_price("$79.99", "$99.99")

    assert price.current == Decimal("79.99")
    assert price.original == Decimal("99.99")
    assert price.currency == "USD"


def test_original_price_not_above_current_is_dropped():
    assert parse_price("$79.99", "$79.99").original is None
    assert parse_price("$79.99", "$50.00").original is None


def test_zero_price_yields_nothing():
    assert parse_price("$0.00") is None
    assert parse_price("") is None
    assert parse_price(None) is None


def test_currency_hint_used_when_text_has_no_symbol():
    assert parse_price("39.90", currency_hint="myr").currency == "MYR"
    # Symbol in text wins over the hint
    assert parse_price("€39.90", currency_hint="USD").currency == "EUR"
    assert parse_price("39.90").currency == "USD"
