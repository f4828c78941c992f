"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, the sweeper CLI, tests) must react to ledger errors
precisely.  Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Has a CATEGORY and an HTTP_STATUS hint so the outer layer can map it
     without a lookup table of its own
  4. Carries structured DATA (ids, amounts, statuses) as attributes

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- NotFoundError                                   (404)
    |   +-- VendorNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- PurchaseOrderItemNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- StateConflictError                              (400, never retried)
    |   +-- VendorInactiveError
    |   +-- InvalidStateForMutationError
    |   +-- InvalidStatusTransitionError
    |   +-- ImmutableAfterTerminalError
    |   +-- CannotCancelWithPaymentsError
    |   +-- CannotDeleteWithPaymentHistoryError
    |   +-- InvalidPoStateForPaymentError
    |   +-- PaymentAlreadyVoidedError
    |
    +-- InvariantViolationError                         (400, logged)
    |   +-- PaymentExceedsOutstandingError
    |   +-- RecalculationInvariantViolationError
    |   +-- LastItemRemovalForbiddenError
    |   +-- LedgerInvariantError
    |
    +-- LedgerValidationError                           (400)
    |
    +-- ReferenceAllocationError                        (reference allocation)
    |   +-- SequenceExhaustedError                      (400, not retried)
    |   +-- ReferenceGenerationFailedError              (409, retries spent)
    |
    +-- ConcurrencyError                                (409)
        +-- ConcurrentModificationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                              | When Raised
----------------|-----------------------------------|------------------------------------
Not found       | VENDOR_NOT_FOUND                  | Vendor ID doesn't exist
                | PURCHASE_ORDER_NOT_FOUND          | PO missing or tombstoned
                | PURCHASE_ORDER_ITEM_NOT_FOUND     | Item not on this PO
                | PAYMENT_NOT_FOUND                 | Payment ID doesn't exist
----------------|-----------------------------------|------------------------------------
State conflict  | VENDOR_INACTIVE                   | PO for an inactive vendor
                | INVALID_STATE_FOR_MUTATION        | Item edit outside PENDING/APPROVED
                | INVALID_STATUS_TRANSITION         | Transition not in the table
                | IMMUTABLE_AFTER_TERMINAL          | Non-notes edit on PAID/CANCELLED
                | CANNOT_CANCEL_WITH_PAYMENTS       | Cancel while paid_amount > 0
                | CANNOT_DELETE_WITH_PAYMENT_HISTORY| Remove while paid_amount > 0
                | INVALID_PO_STATE_FOR_PAYMENT      | Payment on PENDING/PAID/CANCELLED
                | PAYMENT_ALREADY_VOIDED            | Second void of the same payment
----------------|-----------------------------------|------------------------------------
Invariant       | PAYMENT_EXCEEDS_OUTSTANDING       | amount > outstanding_amount
                | RECALCULATION_INVARIANT_VIOLATION | New total below paid_amount
                | LAST_ITEM_REMOVAL_FORBIDDEN       | Removing the only item
                | LEDGER_INVARIANT_VIOLATION        | Post-mutation check failed
----------------|-----------------------------------|------------------------------------
Validation      | LEDGER_VALIDATION_ERROR           | Malformed input field
----------------|-----------------------------------|------------------------------------
Reference       | SEQUENCE_EXHAUSTED                | >999 references for one prefix/day
                | REFERENCE_GENERATION_FAILED       | Unique collision after retries
----------------|-----------------------------------|------------------------------------
Concurrency     | CONCURRENT_MODIFICATION           | Serialization/lock conflict after
                |                                   | the retry budget

===============================================================================
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses have a ``code`` class attribute for machine-readable
    identification, a ``category``, and an ``http_status`` hint.
    """

    code: str = "LEDGER_ERROR"
    category: str = "internal"
    http_status: int = 500


# Not-found errors


class NotFoundError(LedgerError):
    """Base exception for missing vendors, purchase orders, items, payments."""

    code: str = "NOT_FOUND"
    category: str = "not_found"
    http_status: int = 404


class VendorNotFoundError(NotFoundError):
    """Vendor with given ID was not found."""

    code: str = "VENDOR_NOT_FOUND"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor not found: {vendor_id}")


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order does not exist or has been removed."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, purchase_order_id: str):
        self.purchase_order_id = purchase_order_id
        super().__init__(f"Purchase order not found: {purchase_order_id}")


class PurchaseOrderItemNotFoundError(NotFoundError):
    """Item is not part of the given purchase order."""

    code: str = "PURCHASE_ORDER_ITEM_NOT_FOUND"

    def __init__(self, purchase_order_id: str, item_id: str):
        self.purchase_order_id = purchase_order_id
        self.item_id = item_id
        super().__init__(
            f"Item {item_id} not found on purchase order {purchase_order_id}"
        )


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID or reference was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# State-conflict errors


class StateConflictError(LedgerError):
    """Base exception for operations not allowed in the current state."""

    code: str = "STATE_CONFLICT"
    category: str = "state_conflict"
    http_status: int = 400


class VendorInactiveError(StateConflictError):
    """Purchase orders cannot be raised against an inactive vendor."""

    code: str = "VENDOR_INACTIVE"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor {vendor_id} is inactive")


class InvalidStateForMutationError(StateConflictError):
    """Items can only change while the PO is PENDING or APPROVED."""

    code: str = "INVALID_STATE_FOR_MUTATION"

    def __init__(self, po_number: str, status: str, action: str):
        self.po_number = po_number
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} on purchase order {po_number} with status {status}"
        )


class InvalidStatusTransitionError(StateConflictError):
    """Status change is not in the lifecycle transition table."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, po_number: str, from_status: str, to_status: str):
        self.po_number = po_number
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot transition purchase order {po_number} "
            f"from {from_status} to {to_status}"
        )


class ImmutableAfterTerminalError(StateConflictError):
    """Only notes may change once a PO is PAID or CANCELLED."""

    code: str = "IMMUTABLE_AFTER_TERMINAL"

    def __init__(self, po_number: str, status: str, fields: list[str]):
        self.po_number = po_number
        self.status = status
        self.fields = fields
        super().__init__(
            f"Cannot modify {', '.join(fields)} on {status} purchase order {po_number}"
        )


class CannotCancelWithPaymentsError(StateConflictError):
    """A PO with applied payments cannot be cancelled; void them first."""

    code: str = "CANNOT_CANCEL_WITH_PAYMENTS"

    def __init__(self, po_number: str, paid_amount: Decimal):
        self.po_number = po_number
        self.paid_amount = paid_amount
        super().__init__(
            f"Cannot cancel purchase order {po_number} with payments "
            f"of {paid_amount}. Void payments first."
        )


class CannotDeleteWithPaymentHistoryError(StateConflictError):
    """A PO with applied payments cannot be removed; cancel it instead."""

    code: str = "CANNOT_DELETE_WITH_PAYMENT_HISTORY"

    def __init__(self, po_number: str, paid_amount: Decimal):
        self.po_number = po_number
        self.paid_amount = paid_amount
        super().__init__(
            f"Cannot delete purchase order {po_number} with payment history "
            f"({paid_amount} paid)"
        )


class InvalidPoStateForPaymentError(StateConflictError):
    """Payments are accepted only on APPROVED, PARTIALLY_PAID or OVERDUE POs."""

    code: str = "INVALID_PO_STATE_FOR_PAYMENT"

    def __init__(self, po_number: str, status: str):
        self.po_number = po_number
        self.status = status
        super().__init__(
            f"Cannot record payment for purchase order {po_number} "
            f"with status {status}"
        )


class PaymentAlreadyVoidedError(StateConflictError):
    """Void is one-way; a voided payment cannot be voided again."""

    code: str = "PAYMENT_ALREADY_VOIDED"

    def __init__(self, payment_reference: str):
        self.payment_reference = payment_reference
        super().__init__(f"Payment {payment_reference} is already voided")


# Invariant-violation errors


class InvariantViolationError(LedgerError):
    """Base exception for operations that would break a monetary invariant."""

    code: str = "INVARIANT_VIOLATION"
    category: str = "invariant_violation"
    http_status: int = 400


class PaymentExceedsOutstandingError(InvariantViolationError):
    """Payment amount is larger than the PO's outstanding balance."""

    code: str = "PAYMENT_EXCEEDS_OUTSTANDING"

    def __init__(self, po_number: str, amount: Decimal, outstanding_amount: Decimal):
        self.po_number = po_number
        self.amount = amount
        self.outstanding_amount = outstanding_amount
        super().__init__(
            f"Payment of {amount} exceeds outstanding balance "
            f"{outstanding_amount} on purchase order {po_number}"
        )


class RecalculationInvariantViolationError(InvariantViolationError):
    """Recomputed total would fall below what has already been paid."""

    code: str = "RECALCULATION_INVARIANT_VIOLATION"

    def __init__(self, po_number: str, total_amount: Decimal, paid_amount: Decimal):
        self.po_number = po_number
        self.total_amount = total_amount
        self.paid_amount = paid_amount
        super().__init__(
            f"Recalculated total {total_amount} is below paid amount "
            f"{paid_amount} on purchase order {po_number}"
        )


class LastItemRemovalForbiddenError(InvariantViolationError):
    """A PO must keep at least one item."""

    code: str = "LAST_ITEM_REMOVAL_FORBIDDEN"

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Cannot remove the last item from purchase order {po_number}")


class LedgerInvariantError(InvariantViolationError):
    """A committed-state monetary invariant does not hold."""

    code: str = "LEDGER_INVARIANT_VIOLATION"

    def __init__(self, po_number: str, invariant: str, detail: str):
        self.po_number = po_number
        self.invariant = invariant
        self.detail = detail
        super().__init__(
            f"Invariant {invariant} violated on purchase order {po_number}: {detail}"
        )


# Validation errors


class LedgerValidationError(LedgerError):
    """An input field is malformed (amount, quantity, percentage, reason)."""

    code: str = "LEDGER_VALIDATION_ERROR"
    category: str = "validation"
    http_status: int = 400

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Reference allocation errors


class ReferenceAllocationError(LedgerError):
    """Base exception for reference (PO number / payment reference) allocation."""

    code: str = "REFERENCE_ERROR"
    category: str = "reference"
    http_status: int = 409


class SequenceExhaustedError(ReferenceAllocationError):
    """More references requested for one prefix and day than the suffix holds."""

    code: str = "SEQUENCE_EXHAUSTED"
    category: str = "state_conflict"
    http_status: int = 400

    def __init__(self, prefix: str, day: str, limit: int):
        self.prefix = prefix
        self.day = day
        self.limit = limit
        super().__init__(
            f"Reference sequence {prefix}-{day} exhausted ({limit} per day)"
        )


class ReferenceGenerationFailedError(ReferenceAllocationError):
    """Generated reference kept colliding after the bounded retries."""

    code: str = "REFERENCE_GENERATION_FAILED"
    category: str = "transient"
    http_status: int = 409

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique reference for {operation} "
            f"after {attempts} attempts"
        )


# Concurrency errors


class ConcurrencyError(LedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    category: str = "transient"
    http_status: int = 409


class ConcurrentModificationError(ConcurrencyError):
    """Serialization or lock conflict persisted through the retry budget."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification during {operation}; gave up after {attempts} attempts"
        )
