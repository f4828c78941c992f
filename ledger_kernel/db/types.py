"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money and
    percentage columns.  Centralizes precision and rounding so that every
    model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Two-decimal money.  MONEY_DECIMAL_PLACES is the canonical precision for
      every monetary column and round_money() is the ONLY sanctioned rounding
      function for monetary values.
    - No floats.  All monetary amounts use Decimal.  Floats handed in at the
      boundary are converted through their shortest repr, never through the
      binary value.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount: 15 digits total, 2 decimal places
Money = Annotated[Decimal, Numeric(15, 2)]

# Tax rate / discount percentage, e.g. 18.00
Percent = Annotated[Decimal, Numeric(5, 2)]

# Short identifier strings (po_number, payment_reference)
ShortCode = Annotated[str, String(50)]

# Long text for notes and addresses
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
ONE_HUNDRED = Decimal("100")

# Rounding epsilon for paid + outstanding == total
MONEY_TOLERANCE = Decimal("0.01")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """
    Convert a boundary value to Decimal without going through binary float.

    Raises:
        ValueError: If value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        if isinstance(value, float):
            return Decimal(repr(value))
        return Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values in the
    ledger.  All other code delegates rounding here.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def has_at_most_places(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> bool:
    """True if value carries no precision beyond ``decimal_places``."""
    exponent = value.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        return False
    return exponent >= -decimal_places


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal = MONEY_TOLERANCE) -> bool:
    """Compare two monetary values within the rounding epsilon."""
    return abs(a - b) <= tolerance
