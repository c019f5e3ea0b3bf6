"""
Module: ledger_kernel.db.types
Responsibility: The money column type, amount coercion and rounding helpers.
    Precision and the balancing tolerance live here so models, the posting
    engine and the reporting engine share one definition.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.
Invariants enforced:
    - No floats for money.  Line amounts pass through to_money() before
      they reach a JournalLine.
    - round_money() is the only sanctioned rounding function for amounts
      shown on reports or produced by document templates.
Failure modes:
    - TypeError on float input to to_money().
    - decimal.InvalidOperation on non-numeric strings.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# Absolute tolerance used by every debit == credit comparison
BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def to_money(value: Decimal | int | str | None) -> Decimal:
    """Coerce a value to Decimal; None becomes zero.

    Floats are rejected: they would carry binary rounding into the ledger.
    """
    if value is None:
        return ZERO
    if isinstance(value, (float, bool)):
        raise TypeError(f"Monetary amounts must be Decimal, int or str, not {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    if not isinstance(value, (int, str)):
        raise TypeError(f"Cannot convert {type(value).__name__} to a monetary amount")
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of places.

    Args:
        value: Amount to round.
        decimal_places: Target scale (2 for display currency).
        rounding: decimal rounding mode, ROUND_HALF_UP by default.

    Returns:
        Quantized Decimal.
    """
    quantum = Decimal(10) ** -decimal_places
    return value.quantize(quantum, rounding=rounding)


def within_tolerance(
    left: Decimal,
    right: Decimal,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> bool:
    """True when |left - right| does not exceed the tolerance."""
    return abs(left - right) <= tolerance
