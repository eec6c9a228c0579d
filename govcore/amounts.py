"""
Power Amounts

Voting power is accounted in Decimal at POWER_PRECISION significant digits.
Sums run with Inexact trapped: a total that would need rounding raises
PowerPrecisionError instead of losing digits.
"""

from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Iterable

from .constants import POWER_PRECISION
from .exceptions import PowerPrecisionError

ZERO = Decimal("0")


def power_context(exact: bool = True) -> Context:
    traps = [InvalidOperation, DivisionByZero, Overflow]
    if exact:
        traps.append(Inexact)
    return Context(prec=POWER_PRECISION, traps=traps)


def sum_powers(amounts: Iterable[Decimal]) -> Decimal:
    """Exact sum of *amounts*."""
    with localcontext(power_context()):
        try:
            return sum(amounts, ZERO)
        except Inexact as exc:
            raise PowerPrecisionError(
                f"Power total exceeds {POWER_PRECISION} significant digits"
            ) from exc


def share_of(part: Decimal, total: Decimal) -> Decimal:
    """*part* as a percentage of *total*; 0 when *total* is 0."""
    if total == 0:
        return ZERO
    with localcontext(power_context(exact=False)):
        return part / total * 100
