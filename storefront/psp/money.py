"""Conversion between decimal currency and integer minor units (paise)."""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
MINOR_PER_MAJOR = 100

Amount = Union[Decimal, int, float, str]


def to_decimal(amount: Amount) -> Decimal:
    """Parse an amount into a Decimal quantized to two places (half-up)."""
    if isinstance(amount, bool):
        raise ValueError("amount must be numeric")
    if isinstance(amount, float):
        # str() keeps the shortest repr, so 499.99 does not become 499.98999...
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise ValueError("amount must not be negative")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Amount) -> int:
    """499.99 -> 49999"""
    return int(to_decimal(amount) * MINOR_PER_MAJOR)


def from_minor_units(minor: int) -> Decimal:
    """49999 -> Decimal('499.99')"""
    if isinstance(minor, bool) or not isinstance(minor, int):
        raise ValueError(f"minor units must be an integer, got {minor!r}")
    return (Decimal(minor) / MINOR_PER_MAJOR).quantize(CENT)
