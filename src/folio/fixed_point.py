"""Integer fixed-point arithmetic with explicit rounding direction.

Units follow the convention D18{unit} / D27{unit}: an integer holding
``value * 10**18`` / ``value * 10**27``. Transcendental functions are
evaluated with ``decimal`` at a fixed precision so results are deterministic.
"""

from decimal import ROUND_FLOOR, Context, Decimal, localcontext
from enum import Enum

from folio.errors import MathError

D9 = 10**9
D18 = 10**18
D27 = 10**27

_PRECISION = 80
_D18_DEC = Decimal(D18)


class Rounding(str, Enum):
    FLOOR = "floor"
    CEIL = "ceil"


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Compute ``a * b / denominator`` on non-negative integers."""
    if denominator == 0:
        raise MathError("division by zero")
    if a < 0 or b < 0 or denominator < 0:
        raise MathError(f"negative operand: {a} * {b} / {denominator}")

    quotient, remainder = divmod(a * b, denominator)
    if rounding == Rounding.CEIL and remainder:
        quotient += 1
    return quotient


def ceil_div(a: int, b: int) -> int:
    return mul_div(a, 1, b, Rounding.CEIL)


def _context() -> Context:
    return Context(prec=_PRECISION, rounding=ROUND_FLOOR)


def ln_d18(x: int) -> int:
    """D18 natural logarithm of a D18 value, rounded toward -inf."""
    if x <= 0:
        raise MathError(f"ln undefined for {x}")
    with localcontext(_context()):
        result = (Decimal(x) / _D18_DEC).ln() * _D18_DEC
        return int(result.to_integral_value(rounding=ROUND_FLOOR))


def exp_neg(amount: int, x: int) -> int:
    """Compute ``floor(amount * e^(-x / 1e18))``.

    ``x`` is a non-negative D18 exponent. The result is non-increasing in
    ``x`` and never exceeds ``amount``.
    """
    if amount < 0 or x < 0:
        raise MathError(f"exp_neg expects non-negative operands, got {amount}, {x}")
    if x == 0:
        return amount
    with localcontext(_context()):
        factor = (-(Decimal(x) / _D18_DEC)).exp()
        result = Decimal(amount) * factor
        return min(amount, int(result.to_integral_value(rounding=ROUND_FLOOR)))
