"""
Money and GST Calculations

All amounts are integer **cents** to avoid floating-point errors.
Arithmetic runs on Decimal and results are rounded back to whole cents.

Australian GST is 10%. The GST inside a GST-inclusive total is total / 11.

Rounding:
- General results round half away from zero (ROUND_HALF_UP)
- Business-use percentages round DOWN (floor), so a claim never exceeds
  what the BAS report calculates for the same expense
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union


GST_RATE = Decimal("0.10")
GST_DIVISOR = Decimal("11")

_WHOLE = Decimal("1")

Number = Union[int, float, str, Decimal]


def _round(value: Decimal) -> int:
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def _floor(value: Decimal) -> int:
    return int(value.quantize(_WHOLE, rounding=ROUND_FLOOR))


def add_amounts(amount_a_cents: int, amount_b_cents: int) -> int:
    """Sum two amounts in cents."""
    return _round(Decimal(amount_a_cents) + Decimal(amount_b_cents))


def add_gst(subtotal_cents: int) -> int:
    """
    Add 10% GST to a subtotal.

    add_gst(10000)  # $100.00 -> $110.00 = 11000
    """
    subtotal = Decimal(subtotal_cents)
    return _round(subtotal + subtotal * GST_RATE)


def calc_gst_from_total(total_cents: int) -> int:
    """
    GST component of a GST-inclusive total (total / 11).

    calc_gst_from_total(11000)  # 1000
    """
    return _round(Decimal(total_cents) / GST_DIVISOR)


def calc_subtotal_from_total(total_cents: int) -> int:
    """Ex-GST subtotal of a GST-inclusive total."""
    return total_cents - calc_gst_from_total(total_cents)


def apply_biz_percent(amount_cents: int, biz_percent: Number) -> int:
    """
    Business-use portion of an amount, rounded down.

    apply_biz_percent(1001, 50.1)  # 1001 * 0.501 = 501.501 -> 501

    Raises:
        ValueError: If biz_percent is outside 0-100.
    """
    percent = Decimal(str(biz_percent))
    if percent < 0 or percent > 100:
        raise ValueError("Business percentage must be between 0 and 100")
    return _floor(Decimal(amount_cents) * percent / Decimal(100))


def calc_deductible_gst(gst_cents: int, biz_percent: Number) -> int:
    """Claimable GST for BAS label 1B."""
    return apply_biz_percent(gst_cents, biz_percent)


def format_cents(cents: int) -> str:
    """
    Display string for an amount. Not for calculations.

    format_cents(10050)   # "$100.50"
    format_cents(-2500)   # "-$25.00"
    """
    dollars = Decimal(cents) / Decimal(100)
    if dollars < 0:
        return f"-${-dollars:.2f}"
    return f"${dollars:.2f}"


def dollars_to_cents(dollars: Number) -> int:
    """
    Convert a dollar amount to cents.

    dollars_to_cents("100.50")  # 10050

    Raises:
        ValueError: If the value is not a number.
    """
    try:
        # str() so floats convert by their shortest repr, not binary expansion
        value = Decimal(str(dollars).strip())
    except InvalidOperation:
        raise ValueError(f"Not a dollar amount: {dollars!r}") from None
    if not value.is_finite():
        raise ValueError(f"Not a dollar amount: {dollars!r}")
    return _round(value * Decimal(100))


def cents_to_dollars(cents: int) -> Decimal:
    """Convert cents to a Decimal dollar amount."""
    return Decimal(cents) / Decimal(100)
