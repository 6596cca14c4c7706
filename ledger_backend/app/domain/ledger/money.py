"""
Fixed-point money helpers.

All amounts are Decimal quantized to cents with ROUND_HALF_UP.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple
from ledger_backend.app.models.ledger_enums import BalanceSide

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def split_balance(signed: Decimal) -> Tuple[Decimal, BalanceSide]:
    """Signed debit-positive balance -> (unsigned amount, side). Zero reports as debit."""
    signed = money(signed)
    if signed >= 0:
        return signed, BalanceSide.DEBIT
    return -signed, BalanceSide.CREDIT


def percent_change(current: Decimal, previous: Decimal):
    """None when there is no previous amount to compare against."""
    if previous is None or money(previous) == ZERO:
        return None
    return ((money(current) - money(previous)) / abs(money(previous)) * 100).quantize(
        TWOPLACES, rounding=ROUND_HALF_UP
    )
