"""Decimal helpers shared by the planner.

The planner works in whole-token and whole-share units with ``Decimal`` at a
high precision, and converts to fixed-point integers only when emitting.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Iterable, Union

from folio.errors import PlannerError

DEFAULT_PRECISION = 60

D9 = Decimal("1e9")
D18 = Decimal("1e18")
D27 = Decimal("1e27")
ONE = Decimal(1)
ZERO = Decimal(0)

Number = Union[int, float, str, Decimal]


def planner_context(precision: int = DEFAULT_PRECISION):
    """Context manager for planner arithmetic."""
    return localcontext(Context(prec=precision, rounding=ROUND_HALF_UP))


def dec(value: Number) -> Decimal:
    # floats convert through their shortest repr
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_decimals(values: Iterable[Number]) -> list[Decimal]:
    """Convert prices to Decimals, rejecting zero.

    Raises:
        PlannerError: If any price is zero
    """
    result = [dec(v) for v in values]
    if any(v == 0 for v in result):
        raise PlannerError("a price is zero")
    return result


def emit(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, ties away from zero."""
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def scale(decimals: int) -> Decimal:
    """{tok/wholeTok} for a token with ``decimals`` decimals."""
    return Decimal(10) ** decimals
