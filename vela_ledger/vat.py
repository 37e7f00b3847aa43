"""
VAT Calculator

Converts an entered amount, a VAT rate and an "amount already includes
VAT" flag into the subtotal / VAT / total triple stored on every
transaction.

Rounding is half away from zero to cents. Decimal's ROUND_HALF_UP is
exactly that rule (it rounds on magnitude), so no epsilon nudging is
needed the way it is with binary floats.

Negative or non-numeric amounts are rejected by callers before they get
here (see vela_ledger.validation).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from pydantic import BaseModel

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


class VatBreakdown(BaseModel):
    """Result of a VAT computation."""

    subtotal: Decimal
    vat: Decimal
    total: Decimal


def to_decimal(value: Number) -> Decimal:
    """Convert user or storage input to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value).strip())


def round2(value: Number) -> Decimal:
    """Round to 2 decimals, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_vat(amount: Number, rate: Number, included: bool) -> VatBreakdown:
    """
    Split an amount into subtotal, VAT and total.

    Args:
        amount: Entered amount (the total if ``included``, else the subtotal)
        rate: VAT rate as a fraction, e.g. 0.16
        included: Whether ``amount`` already contains the VAT

    Returns:
        VatBreakdown with all three values rounded to cents
    """
    amount_d = to_decimal(amount)
    rate_d = to_decimal(rate)

    if included:
        subtotal = round2(amount_d / (1 + rate_d))
        vat = round2(amount_d - subtotal)
        total = amount_d
    else:
        vat = round2(amount_d * rate_d)
        subtotal = amount_d
        total = round2(amount_d + vat)

    return VatBreakdown(subtotal=subtotal, vat=vat, total=total)
