"""
Status -- purchase order lifecycle and payment enumerations.

Responsibility:
    Holds the PO state machine (transition table and status sets) and the
    single status derivation function used by every monetary mutation path:
    payment application, payment reversal, and item recomputation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by models/
    for column enums and by services/ for guards.

Invariants enforced:
    - Initial state is PENDING; PAID and CANCELLED are terminal.
    - OVERDUE is never a target of an explicit status edit; only the overdue
      sweep (and derive_status after a void) reaches it.
    - CANCELLED implies paid_amount == 0 (enforced by the cancel guard, not
      by derive_status, which never produces CANCELLED).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum


class PurchaseOrderStatus(str, Enum):
    """Lifecycle status of a purchase order."""

    PENDING = "pending"
    APPROVED = "approved"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment lifecycle: COMPLETED -> VOIDED, one-way."""

    COMPLETED = "completed"
    VOIDED = "voided"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHEQUE = "cheque"
    UPI = "upi"
    NEFT = "neft"
    RTGS = "rtgs"


class PaymentTerms(IntEnum):
    """Vendor payment terms in days relative to the PO date.

    ADVANCE is negative: the PO falls due a week *before* its own date.
    """

    IMMEDIATE = 0
    ADVANCE = -7
    NET_15 = 15
    NET_30 = 30
    NET_45 = 45
    NET_60 = 60


VALID_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.PENDING: frozenset({
        PurchaseOrderStatus.APPROVED,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.APPROVED: frozenset({
        PurchaseOrderStatus.PARTIALLY_PAID,
        PurchaseOrderStatus.PAID,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.PARTIALLY_PAID: frozenset({
        PurchaseOrderStatus.PAID,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.OVERDUE: frozenset({
        PurchaseOrderStatus.PARTIALLY_PAID,
        PurchaseOrderStatus.PAID,
        PurchaseOrderStatus.CANCELLED,
    }),
    # Terminal states -- no transitions allowed
    PurchaseOrderStatus.PAID: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: frozenset[PurchaseOrderStatus] = frozenset({
    PurchaseOrderStatus.PAID,
    PurchaseOrderStatus.CANCELLED,
})

# Item add/update/remove is allowed only here.
ITEM_MUTABLE_STATUSES: frozenset[PurchaseOrderStatus] = frozenset({
    PurchaseOrderStatus.PENDING,
    PurchaseOrderStatus.APPROVED,
})

PAYABLE_STATUSES: frozenset[PurchaseOrderStatus] = frozenset({
    PurchaseOrderStatus.APPROVED,
    PurchaseOrderStatus.PARTIALLY_PAID,
    PurchaseOrderStatus.OVERDUE,
})

SWEEPABLE_STATUSES: frozenset[PurchaseOrderStatus] = frozenset({
    PurchaseOrderStatus.PENDING,
    PurchaseOrderStatus.APPROVED,
    PurchaseOrderStatus.PARTIALLY_PAID,
})

# Statuses in which the PO must hold at least one item.
ITEMS_REQUIRED_STATUSES: frozenset[PurchaseOrderStatus] = frozenset({
    PurchaseOrderStatus.PENDING,
    PurchaseOrderStatus.APPROVED,
    PurchaseOrderStatus.PARTIALLY_PAID,
    PurchaseOrderStatus.OVERDUE,
})


def can_transition(
    current: PurchaseOrderStatus,
    target: PurchaseOrderStatus,
) -> bool:
    """True iff ``current -> target`` is in the transition table."""
    return target in VALID_TRANSITIONS[current]


def derive_status(
    paid_amount: Decimal,
    total_amount: Decimal,
    due_date: date,
    today: date,
    current: PurchaseOrderStatus,
) -> PurchaseOrderStatus:
    """
    Derive the PO status implied by its amounts.

    Rules:
        - PENDING and CANCELLED are never changed by money movement
          (PENDING POs accept no payments; CANCELLED POs carry none).
        - Something paid and nothing outstanding: PAID.
        - Something paid, something outstanding: PARTIALLY_PAID.
        - Nothing paid: OVERDUE when the due date has passed and a balance
          remains, otherwise APPROVED.

    Args:
        paid_amount: Paid amount after the mutation.
        total_amount: Total amount after the mutation.
        due_date: PO due date.
        today: Reference date for the overdue check.
        current: Status before the mutation.

    Returns:
        The status the PO should hold after the mutation.
    """
    if current in (PurchaseOrderStatus.PENDING, PurchaseOrderStatus.CANCELLED):
        return current

    outstanding = total_amount - paid_amount
    if paid_amount > 0:
        if outstanding <= 0:
            return PurchaseOrderStatus.PAID
        return PurchaseOrderStatus.PARTIALLY_PAID

    if due_date < today and outstanding > 0:
        return PurchaseOrderStatus.OVERDUE
    return PurchaseOrderStatus.APPROVED
