"""
Currency text helpers for the amount input.

The amount field is typed as text. While typing we keep only digits and
one decimal point (at most two decimals); once the field loses focus the
value is shown with es-MX grouping ("12,345.60").
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from vela_ledger.vat import round2

_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_ZEROS = re.compile(r"^0+(?=\d)")


def normalize_currency_value(value: Optional[str]) -> str:
    """
    Clean raw amount text.

    >>> normalize_currency_value("$1,200.456")
    '1200.45'
    >>> normalize_currency_value("007")
    '7'
    >>> normalize_currency_value(".5")
    '0.5'
    """
    if not value:
        return ""

    sanitized = _NON_NUMERIC.sub("", value.replace(",", ""))
    if not sanitized:
        return ""

    has_decimal = "." in sanitized
    integer_raw, _, decimal_raw = sanitized.partition(".")
    decimal_raw = decimal_raw.replace(".", "")

    integer_part = _LEADING_ZEROS.sub("", integer_raw)
    if not integer_part:
        integer_part = "0" if has_decimal else ""

    if not has_decimal:
        return integer_part

    decimal_part = decimal_raw[:2]
    return f"{integer_part}.{decimal_part}" if decimal_part else f"{integer_part}."


def format_currency_display(value: Optional[str]) -> str:
    """Show a normalized amount with thousands grouping and two decimals."""
    if not value:
        return ""
    try:
        number = Decimal(value)
    except InvalidOperation:
        return ""
    if not number.is_finite():
        return ""
    return f"{round2(number):,.2f}"


def format_amount_from_number(value: Union[Decimal, int, float, None]) -> str:
    """Render a stored amount back into the input field (no grouping)."""
    if value is None:
        return ""
    if isinstance(value, float) and value != value:
        return ""
    return f"{round2(value):.2f}"


def format_money(value: Union[Decimal, int, float], currency: str = "MXN") -> str:
    """Display form used in lists and cards, e.g. "$1,160.00 MXN"."""
    return f"${round2(value):,.2f} {currency}"
