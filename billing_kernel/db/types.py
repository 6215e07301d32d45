"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money
    columns.  Centralizes precision, rounding and the comparison tolerance so
    that every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and billing_modules.  MUST NOT import from any of
    those layers.

Invariants enforced:
    - No floats anywhere in the billing kernel.  All monetary amounts use
      Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for amounts
      presented to callers.
    - money_close() is the ONLY sanctioned "equal within epsilon" check
      (paid + due == total reconciliation).

Failure modes:
    - decimal.InvalidOperation from to_money() on non-numeric input.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Percentage with 4 decimal places (commission rates)
Percentage = Annotated[Decimal, Numeric(9, 4)]

# Monotonic sequence number for ordering
Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 9
DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# Tolerance for invoice reconciliation checks
CURRENCY_EPSILON = Decimal("0.01")

ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """
    Coerce int, str or Decimal into a Decimal amount.

    Floats are routed through ``str`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return to_money(value).quantize(Decimal(quantize_str), rounding=rounding)


def money_close(
    left: Decimal,
    right: Decimal,
    epsilon: Decimal = CURRENCY_EPSILON,
) -> bool:
    """True when two amounts differ by less than ``epsilon``."""
    return abs(to_money(left) - to_money(right)) < epsilon


def percentage_of(part: Decimal, whole: Decimal, decimal_places: int = 2) -> Decimal:
    """``part / whole * 100`` rounded; zero when ``whole`` is zero."""
    whole = to_money(whole)
    if whole == ZERO:
        return round_money(ZERO, decimal_places)
    return round_money(to_money(part) / whole * Decimal("100"), decimal_places)
