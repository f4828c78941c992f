"""
Totals -- line-item and purchase order monetary computation.

Responsibility:
    Computes line totals and the PO-level subtotal, discount, tax and total
    from item inputs, applies caller overrides, and checks the monetary
    invariants of a PO snapshot.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by the
    purchase order service on create and on every item mutation, and by
    the coordinator's invariant check.

Invariants enforced:
    - total_amount == subtotal - discount_amount + tax_amount, computed from
      the already-rounded components so the identity holds exactly.
    - paid_amount + outstanding_amount == total_amount within MONEY_TOLERANCE.
    - All arithmetic is Decimal; every stored amount passes round_money().

Failure modes:
    - LedgerValidationError for a non-positive quantity, negative price,
      percentage outside 0..100, more than two decimal places, an empty item
      list, or an override that is negative or drives the total negative.

Item formula:
    base           = quantity * unit_price
    after_discount = base * (1 - discount_percent / 100)
    tax            = after_discount * tax_rate / 100
    line_total     = round(after_discount + tax)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ledger_kernel.db.types import (
    MONEY_TOLERANCE,
    ONE_HUNDRED,
    ZERO,
    has_at_most_places,
    round_money,
    to_decimal,
)
from ledger_kernel.exceptions import LedgerValidationError


@dataclass(frozen=True)
class LineAmounts:
    """Unrounded per-line components plus the rounded line total."""

    base: Decimal
    discount: Decimal
    tax: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class PurchaseOrderTotals:
    """Rounded PO-level amounts."""

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def validate_quantity(quantity: int, field: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise LedgerValidationError(field, f"must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise LedgerValidationError(field, "must be positive")
    return quantity


def validate_money(value, field: str, *, allow_zero: bool = True) -> Decimal:
    """Coerce to Decimal and check sign and precision."""
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise LedgerValidationError(field, str(exc)) from exc
    if not amount.is_finite():
        raise LedgerValidationError(field, "must be a finite number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise LedgerValidationError(
            field, "must be non-negative" if allow_zero else "must be positive"
        )
    if not has_at_most_places(amount):
        raise LedgerValidationError(field, "must have at most 2 decimal places")
    return amount


def validate_percent(value, field: str) -> Decimal:
    percent = validate_money(value, field)
    if percent > ONE_HUNDRED:
        raise LedgerValidationError(field, "must be between 0 and 100")
    return percent


def compute_line(
    quantity: int,
    unit_price: Decimal,
    tax_rate: Decimal = ZERO,
    discount_percent: Decimal = ZERO,
) -> LineAmounts:
    """
    Compute one line's components.

    Discount applies to the gross amount; tax applies to the discounted
    amount.  Components are left unrounded so PO totals round once.
    """
    base = Decimal(quantity) * unit_price
    discount = base * discount_percent / ONE_HUNDRED
    after_discount = base - discount
    tax = after_discount * tax_rate / ONE_HUNDRED
    return LineAmounts(
        base=base,
        discount=discount,
        tax=tax,
        line_total=round_money(after_discount + tax),
    )


def compute_totals(
    lines: Iterable[LineAmounts],
    tax_override: Decimal | None = None,
    discount_override: Decimal | None = None,
) -> PurchaseOrderTotals:
    """
    Sum line components into PO totals.

    Overrides replace the item-derived tax or discount verbatim.  They must
    be non-negative and must not push the total below zero.

    Raises:
        LedgerValidationError: On an empty line list or a bad override.
    """
    lines = list(lines)
    if not lines:
        raise LedgerValidationError("items", "at least one item is required")

    subtotal = round_money(sum((line.base for line in lines), ZERO))
    discount_amount = round_money(sum((line.discount for line in lines), ZERO))
    tax_amount = round_money(sum((line.tax for line in lines), ZERO))

    if discount_override is not None:
        discount_amount = round_money(validate_money(discount_override, "discount_amount"))
    if tax_override is not None:
        tax_amount = round_money(validate_money(tax_override, "tax_amount"))

    total_amount = subtotal - discount_amount + tax_amount
    if total_amount < 0:
        raise LedgerValidationError(
            "discount_amount",
            f"discount {discount_amount} exceeds subtotal plus tax "
            f"({subtotal + tax_amount})",
        )

    return PurchaseOrderTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )


def outstanding_for(total_amount: Decimal, paid_amount: Decimal) -> Decimal:
    """Outstanding balance, floored at zero."""
    return max(ZERO, round_money(total_amount - paid_amount))


def invariant_violations(
    subtotal: Decimal,
    discount_amount: Decimal,
    tax_amount: Decimal,
    total_amount: Decimal,
    paid_amount: Decimal,
    outstanding_amount: Decimal,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> list[tuple[str, str]]:
    """
    Check a PO's monetary fields.

    Returns:
        ``(invariant_name, detail)`` pairs; empty when every check holds.
    """
    violations: list[tuple[str, str]] = []

    expected_total = subtotal - discount_amount + tax_amount
    if abs(expected_total - total_amount) > tolerance:
        violations.append((
            "total_composition",
            f"total {total_amount} != subtotal {subtotal} - discount "
            f"{discount_amount} + tax {tax_amount}",
        ))

    if abs(paid_amount + outstanding_amount - total_amount) > tolerance:
        violations.append((
            "balance",
            f"paid {paid_amount} + outstanding {outstanding_amount} "
            f"!= total {total_amount}",
        ))

    if paid_amount < 0:
        violations.append(("paid_non_negative", f"paid {paid_amount} < 0"))
    if outstanding_amount < 0:
        violations.append((
            "outstanding_non_negative",
            f"outstanding {outstanding_amount} < 0",
        ))

    return violations
