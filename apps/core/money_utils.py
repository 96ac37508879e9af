"""
Utility functions for parsing, rounding and formatting money amounts.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_DOWN, ROUND_HALF_UP, localcontext

from babel.numbers import format_currency

CENT = Decimal('0.01')

# Binary floats cannot represent magnitudes beyond this exponent
MAX_EXPONENT = 308

NUMBER_FORMAT_LOCALES = {
    'comma': 'en_US',   # 1,234.56
    'period': 'de_DE',  # 1.234,56
}

_NUMERIC_PREFIX = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def parse_decimal(value, default=Decimal('0')):
    """
    Parse a free-text form value into a Decimal without ever raising.

    Only the leading numeric part of a string is read, so "12abc" is 12
    and "1,5" is 1. Empty, non-numeric and non-finite input returns
    the default.

    Args:
        value: str, int, float, Decimal or None
        default: Value returned when nothing numeric can be read

    Returns:
        Decimal: The parsed value or the default
    """
    if value is None:
        return default

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        match = _NUMERIC_PREFIX.match(str(value))
        if not match:
            return default
        try:
            result = Decimal(match.group(1))
        except InvalidOperation:
            return default

    if not result.is_finite():
        return default
    if result and abs(result.adjusted()) > MAX_EXPONENT:
        return default
    return result


def round_money(value):
    """
    Round an amount to cents, with ties going toward positive infinity.

    2.345 -> 2.35 and -2.345 -> -2.34, the same as round(value * 100) / 100.
    """
    if not isinstance(value, Decimal) or not value.is_finite():
        value = parse_decimal(value)
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN

    # quantize() needs every digit up to the cents to fit in the precision
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=rounding)


def get_number_format(settings=None):
    """Return 'period' or 'comma' from a backend settings mapping."""
    number_format = (settings or {}).get('numberFormat') or 'comma'
    return 'period' if number_format == 'period' else 'comma'


def format_money(value, currency='USD', number_format='comma'):
    """
    Format an amount as a currency string for display.

    Args:
        value: Numeric amount; None or non-numeric values render as ''
        currency: ISO 4217 code, defaults to USD when empty
        number_format: 'comma' (1,234.56) or 'period' (1.234,56)

    Returns:
        str: Locale-formatted currency string
    """
    if value is None or isinstance(value, bool):
        return ''
    if not isinstance(value, (int, float, Decimal)):
        return ''

    locale = NUMBER_FORMAT_LOCALES.get(number_format, NUMBER_FORMAT_LOCALES['comma'])
    amount = value if isinstance(value, Decimal) else Decimal(repr(value) if isinstance(value, float) else value)

    # Ties round away from zero for every currency, including zero-decimal ones
    with localcontext() as ctx:
        ctx.rounding = ROUND_HALF_UP
        if amount.is_finite():
            ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return format_currency(amount, (currency or 'USD').upper(), locale=locale)
