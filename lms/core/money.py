"""Currency minor units, rounding and display formatting.

Arithmetic elsewhere runs on unrounded ``Decimal`` values; the helpers here
are the single place where an amount is rounded to a currency's minor unit.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

# ISO 4217 minor units; anything not listed uses 2
CURRENCY_MINOR_UNITS = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "KWD": 3,
    "BHD": 3,
}

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "INR": "₹",
    "CAD": "C$",
    "AUD": "A$",
    "JPY": "¥",
    "CNY": "¥",
    "SGD": "S$",
    "AED": "د.إ",
}


def to_decimal(value: Number) -> Decimal:
    """Convert without going through binary float noise"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def minor_units(currency: str) -> int:
    return CURRENCY_MINOR_UNITS.get((currency or "").upper(), 2)


def minor_unit_step(currency: str) -> Decimal:
    """Smallest representable amount, e.g. Decimal('0.01')"""
    return Decimal(1).scaleb(-minor_units(currency))


def quantize_money(amount: Number, currency: str) -> Decimal:
    return to_decimal(amount).quantize(minor_unit_step(currency), rounding=ROUND_HALF_UP)


def currency_symbol(currency: str) -> str:
    code = (currency or "").upper()
    return CURRENCY_SYMBOLS.get(code, code)


def format_money(amount: Number, currency: str) -> str:
    """Display string such as '£1,062.00'"""
    value = quantize_money(amount, currency)
    places = minor_units(currency)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.{places}f}"
