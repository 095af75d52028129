# money.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Iterable, NamedTuple

_LOGGER = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# code -> (symbol as shown in en-US, display name)
CURRENCIES: dict[str, tuple[str, str]] = {
    "USD": ("$", "US Dollar"),
    "EUR": ("€", "Euro"),
    "GBP": ("£", "British Pound"),
    "CAD": ("CA$", "Canadian Dollar"),
    "AUD": ("A$", "Australian Dollar"),
    "JPY": ("¥", "Japanese Yen"),
    "CHF": ("CHF ", "Swiss Franc"),
    "CNY": ("CN¥", "Chinese Yuan"),
    "INR": ("₹", "Indian Rupee"),
    "BRL": ("R$", "Brazilian Real"),
}

# locale -> (group separator, decimal separator, symbol goes after the number,
#            separator between number and a trailing symbol)
_LOCALES: dict[str, tuple[str, str, bool, str]] = {
    "en-US": (",", ".", False, ""),
    "en-GB": (",", ".", False, ""),
    "en-CA": (",", ".", False, ""),
    "en-AU": (",", ".", False, ""),
    "en-IN": (",", ".", False, ""),
    "de-DE": (".", ",", True, " "),
    "es-ES": (".", ",", True, " "),
    "fr-FR": (" ", ",", True, " "),
}

DEFAULT_CURRENCY = "USD"
DEFAULT_LOCALE = "en-US"

CURRENCY_OPTIONS = [
    {"code": code, "symbol": symbol.strip(), "name": name}
    for code, (symbol, name) in CURRENCIES.items()
]


class Totals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    discount_amount: Decimal = Decimal("0.00")


def to_decimal(x: object) -> Decimal:
    """Best-effort conversion to Decimal via str to avoid binary float artifacts."""
    if isinstance(x, Decimal):
        return x
    try:
        d = Decimal(str(x).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    if not d.is_finite():
        return Decimal("0")
    return d


def round_money(x: object) -> Decimal:
    """Round to cents with banker's rounding (round-half-to-even)."""
    return to_decimal(x).quantize(CENT, rounding=ROUND_HALF_EVEN)


def line_total(quantity, unit_price) -> Decimal:
    return round_money(to_decimal(quantity) * to_decimal(unit_price))


def sum_money(values: Iterable[object]) -> Decimal:
    total = Decimal("0")
    for v in values:
        total += to_decimal(v)
    return round_money(total)


def compute_totals(unit_price, quantity, tax_rate_percent, discount_rate_percent=0) -> Totals:
    """
    subtotal = unit_price * quantity
    discount = subtotal * discount% (applied before tax)
    tax      = (subtotal - discount) * tax%
    total    = subtotal - discount + tax

    Every intermediate is rounded to cents, so the grand total always equals
    the sum of the displayed lines. Inputs are not validated here.
    """
    subtotal = line_total(quantity, unit_price)
    discount = round_money(subtotal * to_decimal(discount_rate_percent) / HUNDRED)
    taxable = subtotal - discount
    tax = round_money(taxable * to_decimal(tax_rate_percent) / HUNDRED)
    grand = round_money(taxable + tax)
    return Totals(subtotal=subtotal, tax_amount=tax, grand_total=grand, discount_amount=discount)


def is_valid_currency(code: str | None) -> bool:
    return (code or "").strip().upper() in CURRENCIES


def currency_symbol(code: str | None) -> str:
    symbol, _name = CURRENCIES.get((code or "").strip().upper(), CURRENCIES[DEFAULT_CURRENCY])
    return symbol.strip()


def _group_digits(digits: str, sep: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return sep.join(parts)


def format_currency(amount, currency_code: str | None = DEFAULT_CURRENCY, locale: str | None = DEFAULT_LOCALE) -> str:
    """
    Locale-aware currency string, always with two fraction digits.
    Unknown currency codes render as USD; unknown locales render as en-US.
    """
    code = (currency_code or "").strip().upper()
    if code not in CURRENCIES:
        _LOGGER.debug("Unknown currency %r, formatting as %s", currency_code, DEFAULT_CURRENCY)
        code = DEFAULT_CURRENCY
    group_sep, decimal_sep, symbol_after, symbol_sep = _LOCALES.get(locale or DEFAULT_LOCALE, _LOCALES[DEFAULT_LOCALE])

    value = round_money(amount)
    sign = "-" if value < 0 else ""
    whole, frac = f"{abs(value):.2f}".split(".")
    number = f"{_group_digits(whole, group_sep)}{decimal_sep}{frac}"

    symbol = CURRENCIES[code][0]
    if symbol_after:
        return f"{sign}{number}{symbol_sep}{symbol.strip()}"
    return f"{sign}{symbol}{number}"
