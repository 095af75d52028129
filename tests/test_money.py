from __future__ import annotations

from decimal import Decimal

from money import (
    CURRENCY_OPTIONS,
    compute_totals,
    currency_symbol,
    format_currency,
    is_valid_currency,
    line_total,
    round_money,
    sum_money,
    to_decimal,
)


def test_compute_totals_single_line_with_tax() -> None:
    totals = compute_totals(Decimal("1500.00"), 1, Decimal("10"))

    assert totals.subtotal == Decimal("1500.00")
    assert totals.tax_amount == Decimal("150.00")
    assert totals.grand_total == Decimal("1650.00")
    assert totals.discount_amount == Decimal("0.00")
    assert format_currency(totals.grand_total, "USD", "en-US") == "$1,650.00"


def test_compute_totals_rounds_each_step() -> None:
    totals = compute_totals("19.99", 3, "8.25")

    assert totals.subtotal == Decimal("59.97")
    # 59.97 * 8.25% = 4.947525
    assert totals.tax_amount == Decimal("4.95")
    assert totals.grand_total == totals.subtotal + totals.tax_amount


def test_discount_is_taken_before_tax() -> None:
    totals = compute_totals("100", 2, "10", discount_rate_percent="5")

    assert totals.subtotal == Decimal("200.00")
    assert totals.discount_amount == Decimal("10.00")
    assert totals.tax_amount == Decimal("19.00")
    assert totals.grand_total == Decimal("209.00")


def test_zero_tax_total_equals_subtotal() -> None:
    totals = compute_totals("99.95", 2, 0)
    assert totals.tax_amount == Decimal("0.00")
    assert totals.grand_total == totals.subtotal == Decimal("199.90")


def test_round_money_is_half_even() -> None:
    assert round_money("0.125") == Decimal("0.12")
    assert round_money("0.135") == Decimal("0.14")
    assert round_money("2.675") == Decimal("2.68")
    assert round_money(round_money("10.005")) == round_money("10.005")


def test_to_decimal_tolerates_garbage() -> None:
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal(None) == Decimal("0")
    assert to_decimal("NaN") == Decimal("0")
    assert to_decimal("inf") == Decimal("0")
    # floats go through str, so no binary artifacts
    assert to_decimal(0.1) == Decimal("0.1")


def test_line_total_and_sum() -> None:
    assert line_total(3, "33.333") == Decimal("100.00")
    assert sum_money(["0.10", "0.20", Decimal("0.30")]) == Decimal("0.60")
    assert sum_money([]) == Decimal("0.00")


def test_format_currency_grouping_and_sign() -> None:
    assert format_currency(Decimal("1234567.891")) == "$1,234,567.89"
    assert format_currency(0) == "$0.00"
    assert format_currency("-5") == "-$5.00"
    assert format_currency("999.999", "USD") == "$1,000.00"


def test_format_currency_symbols() -> None:
    assert format_currency(1650, "EUR") == "€1,650.00"
    assert format_currency(1650, "GBP") == "£1,650.00"
    assert format_currency(1650, "eur") == "€1,650.00"
    assert format_currency(1650, "CHF") == "CHF 1,650.00"


def test_unknown_currency_formats_as_usd() -> None:
    assert format_currency(1650, "XYZ") == "$1,650.00"
    assert format_currency(1650, None) == "$1,650.00"
    assert format_currency(1650, "") == "$1,650.00"


def test_locale_separators() -> None:
    assert format_currency(1650, "EUR", "de-DE") == "1.650,00 €"
    assert format_currency(1650, "EUR", "fr-FR") == "1 650,00 €"
    assert format_currency("-1234567.5", "EUR", "de-DE") == "-1.234.567,50 €"
    # separators are plain ASCII spaces, never no-break spaces
    for text in (format_currency(1650, "EUR", "de-DE"), format_currency(1650, "EUR", "fr-FR")):
        assert "\xa0" not in text and "\u202f" not in text
    # unknown locale behaves like en-US
    assert format_currency(1650, "USD", "xx-XX") == "$1,650.00"


def test_currency_helpers() -> None:
    assert is_valid_currency("usd")
    assert not is_valid_currency("XYZ")
    assert not is_valid_currency(None)
    assert currency_symbol("JPY") == "¥"
    assert currency_symbol("nope") == "$"
    codes = [o["code"] for o in CURRENCY_OPTIONS]
    assert codes[0] == "USD"
    assert {"EUR", "GBP", "JPY"} <= set(codes)
