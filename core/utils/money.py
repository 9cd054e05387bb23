"""
Money utilities

All amounts are Decimal quantized to 2 places (ROUND_HALF_UP) and stored
as TEXT. Floats never reach the ledger.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert a stored or user-supplied value to a 2-place Decimal

    None and empty strings are treated as zero.

    Args:
        value: Decimal, int, float, str or None

    Returns:
        Decimal quantized to cents

    Raises:
        ValueError: the value is not a number

    Example:
        >>> to_money("50")
        Decimal('50.00')
        >>> to_money(0.125)
        Decimal('0.13')
    """
    if value is None or value == "":
        return ZERO

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            # str() first so floats keep their shortest repr
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary amount: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")

    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str:
    """Canonical TEXT representation for storage"""
    return str(to_money(value))
