"""
Money helpers.

All amounts are Decimal and stored with 8 fractional digits.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

MONEY_QUANT = Decimal("0.00000001")
ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    """Round an amount to storage precision (half-up)."""
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def floor_money(value: Decimal) -> Decimal:
    """Round an amount down to storage precision."""
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_DOWN)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """amount x percent / 100, quantized."""
    return quantize_money(amount * percent / Decimal("100"))
