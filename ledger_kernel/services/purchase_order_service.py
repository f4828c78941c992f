"""
PurchaseOrderService -- the purchase order aggregate.

Responsibility:
    Creates purchase orders, mutates their items, edits status and
    descriptive fields, cancels and tombstones them, applies and reverses
    payment amounts, and runs the bulk overdue transition.  Every monetary
    mutation ends with a full recomputation and an invariant check.

Architecture position:
    Kernel > Services -- imperative shell.  Uses domain/totals.py and
    domain/status.py for all arithmetic and status decisions; called by
    PaymentService and LedgerCoordinator.

Invariants enforced:
    - total_amount == subtotal - discount_amount + tax_amount.
    - paid_amount + outstanding_amount == total_amount (within 0.01),
      both non-negative.
    - A live PO always holds at least one item.
    - CANCELLED implies paid_amount == 0.
    - Items change only while PENDING or APPROVED; only notes change once
      PAID or CANCELLED.
    - Status after a payment or void comes from derive_status(); item
      recomputation never changes status.

Failure modes:
    - VendorNotFoundError / VendorInactiveError on create.
    - PurchaseOrderNotFoundError for a missing or tombstoned PO.
    - InvalidStateForMutationError, InvalidStatusTransitionError,
      ImmutableAfterTerminalError, CannotCancelWithPaymentsError,
      CannotDeleteWithPaymentHistoryError on lifecycle conflicts.
    - RecalculationInvariantViolationError, LastItemRemovalForbiddenError,
      LedgerInvariantError on monetary invariant breaches.

Audit relevance:
    Creation, status changes, cancellation, removal and sweeps are logged
    at INFO with po_number and actor_id.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update

from ledger_kernel.db.types import MONEY_TOLERANCE, ZERO, round_money
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    ItemInput,
    ItemUpdate,
    PurchaseOrderInfo,
    PurchaseOrderUpdate,
)
from ledger_kernel.domain.references import DEFAULT_SEQUENCE_WIDTH, ReferencePrefix
from ledger_kernel.domain.status import (
    ITEM_MUTABLE_STATUSES,
    ITEMS_REQUIRED_STATUSES,
    SWEEPABLE_STATUSES,
    TERMINAL_STATUSES,
    PurchaseOrderStatus,
    can_transition,
    derive_status,
)
from ledger_kernel.domain.totals import (
    LineAmounts,
    compute_line,
    compute_totals,
    invariant_violations,
    outstanding_for,
    validate_money,
    validate_percent,
    validate_quantity,
)
from ledger_kernel.exceptions import (
    CannotCancelWithPaymentsError,
    CannotDeleteWithPaymentHistoryError,
    ImmutableAfterTerminalError,
    InvalidStateForMutationError,
    InvalidStatusTransitionError,
    LastItemRemovalForbiddenError,
    LedgerInvariantError,
    LedgerValidationError,
    PurchaseOrderItemNotFoundError,
    PurchaseOrderNotFoundError,
    RecalculationInvariantViolationError,
    VendorInactiveError,
    VendorNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from ledger_kernel.models.vendor import Vendor
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.reference_allocator import ReferenceAllocator

logger = get_logger("services.purchase_order")

# Fields that may still change on a PAID or CANCELLED PO.
_TERMINAL_EDITABLE_FIELDS = frozenset({"notes"})


class PurchaseOrderService(BaseService[PurchaseOrder]):
    """
    Service for the purchase order aggregate.

    Contract:
        Public methods accept ids and DTOs and return PurchaseOrderInfo.
        ``lock()``, ``apply_payment()`` and ``reverse_payment()`` work on ORM
        rows and are meant for PaymentService within the same transaction.

    Non-goals:
        - Does NOT commit.  LedgerCoordinator owns the transaction.
        - Does NOT list or search -- see PurchaseOrderSelector.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        allocator: ReferenceAllocator | None = None,
        sequence_width: int = DEFAULT_SEQUENCE_WIDTH,
        money_tolerance: Decimal = MONEY_TOLERANCE,
    ):
        super().__init__(session, clock)
        self._tolerance = money_tolerance
        self._allocator = allocator or ReferenceAllocator(
            session, self.clock, sequence_width
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _get(self, purchase_order_id: UUID, for_update: bool = False) -> PurchaseOrder:
        stmt = select(PurchaseOrder).where(
            PurchaseOrder.id == purchase_order_id,
            PurchaseOrder.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        po = self.session.execute(stmt).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(purchase_order_id))
        return po

    def lock(self, purchase_order_id: UUID) -> PurchaseOrder:
        """
        Load a live PO with a row lock held until the transaction ends.

        Serializes concurrent payments, voids and item edits on one PO.
        """
        return self._get(purchase_order_id, for_update=True)

    def get(self, purchase_order_id: UUID) -> PurchaseOrderInfo:
        return PurchaseOrderInfo.from_model(self._get(purchase_order_id))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        vendor_id: UUID,
        items: Sequence[ItemInput],
        actor_id: UUID,
        po_date: date | None = None,
        tax_override: Decimal | None = None,
        discount_override: Decimal | None = None,
        notes: str | None = None,
        reference_number: str | None = None,
        shipping_address: str | None = None,
        billing_address: str | None = None,
    ) -> PurchaseOrderInfo:
        """
        Create a PENDING purchase order.

        Preconditions:
            - The vendor exists and is active.
            - ``items`` is non-empty and every item is well-formed.

        Postconditions:
            - due_date = po_date + vendor.payment_terms_days.
            - paid_amount == 0, outstanding_amount == total_amount.
            - po_number is allocated from today's counter (not po_date's).

        Raises:
            VendorNotFoundError, VendorInactiveError, LedgerValidationError,
            SequenceExhaustedError.
        """
        vendor = self.session.get(Vendor, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(str(vendor_id))
        if not vendor.is_active:
            raise VendorInactiveError(str(vendor_id))

        if not items:
            raise LedgerValidationError("items", "at least one item is required")

        po_date = po_date or self.clock.today()
        due_date = po_date + timedelta(days=vendor.payment_terms_days)

        rows = [self._build_item(item, line_number=n) for n, item in enumerate(items, 1)]
        totals = compute_totals(
            (self._line_amounts(row) for row in rows),
            tax_override=tax_override,
            discount_override=discount_override,
        )

        po_number = self._allocator.next_reference(ReferencePrefix.PURCHASE_ORDER)

        po = PurchaseOrder(
            po_number=po_number,
            vendor_id=vendor_id,
            po_date=po_date,
            due_date=due_date,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            paid_amount=ZERO,
            outstanding_amount=totals.total_amount,
            status=PurchaseOrderStatus.PENDING.value,
            notes=notes,
            reference_number=reference_number,
            shipping_address=shipping_address,
            billing_address=billing_address,
            created_by_id=actor_id,
        )
        po.items.extend(rows)
        self.session.add(po)
        self.session.flush()

        self._assert_invariants(po)

        logger.info(
            "purchase_order_created",
            extra={
                "po_number": po_number,
                "purchase_order_id": str(po.id),
                "vendor_id": str(vendor_id),
                "total_amount": po.total_amount,
                "due_date": due_date,
                "item_count": len(rows),
                "tax_override": tax_override is not None,
                "discount_override": discount_override is not None,
                "actor_id": str(actor_id),
            },
        )
        return PurchaseOrderInfo.from_model(po)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(
        self, purchase_order_id: UUID, item: ItemInput, actor_id: UUID
    ) -> PurchaseOrderInfo:
        po = self.lock(purchase_order_id)
        self._require_item_mutable(po, "add item")

        next_line = max((i.line_number for i in po.items), default=0) + 1
        po.items.append(self._build_item(item, line_number=next_line))

        self._recalculate(po, actor_id)
        logger.info(
            "purchase_order_item_added",
            extra={"po_number": po.po_number, "line_number": next_line},
        )
        return PurchaseOrderInfo.from_model(po)

    def update_item(
        self,
        purchase_order_id: UUID,
        item_id: UUID,
        changes: ItemUpdate,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        po = self.lock(purchase_order_id)
        self._require_item_mutable(po, "update item")
        row = self._find_item(po, item_id)

        provided = changes.provided()
        if "description" in provided:
            row.description = self._validate_description(provided["description"])
        if "quantity" in provided:
            row.quantity = validate_quantity(provided["quantity"])
        if "unit_price" in provided:
            row.unit_price = validate_money(provided["unit_price"], "unit_price")
        if "tax_rate" in provided:
            row.tax_rate = validate_percent(provided["tax_rate"], "tax_rate")
        if "discount_percent" in provided:
            row.discount_percent = validate_percent(
                provided["discount_percent"], "discount_percent"
            )
        if "unit" in provided:
            row.unit = provided["unit"]
        if "item_code" in provided:
            row.item_code = provided["item_code"]

        row.line_total = self._line_amounts(row).line_total
        self._recalculate(po, actor_id)
        logger.info(
            "purchase_order_item_updated",
            extra={
                "po_number": po.po_number,
                "line_number": row.line_number,
                "fields": sorted(provided),
            },
        )
        return PurchaseOrderInfo.from_model(po)

    def remove_item(
        self, purchase_order_id: UUID, item_id: UUID, actor_id: UUID
    ) -> PurchaseOrderInfo:
        po = self.lock(purchase_order_id)
        self._require_item_mutable(po, "remove item")
        row = self._find_item(po, item_id)

        if len(po.items) <= 1:
            logger.warning(
                "last_item_removal_rejected", extra={"po_number": po.po_number}
            )
            raise LastItemRemovalForbiddenError(po.po_number)

        po.items.remove(row)
        self._recalculate(po, actor_id)
        logger.info(
            "purchase_order_item_removed",
            extra={"po_number": po.po_number, "line_number": row.line_number},
        )
        return PurchaseOrderInfo.from_model(po)

    # ------------------------------------------------------------------
    # Status and descriptive edits
    # ------------------------------------------------------------------

    def update_status(
        self,
        purchase_order_id: UUID,
        new_status: PurchaseOrderStatus,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        """
        Move a PO along the transition table.

        CANCELLED goes through ``cancel()`` so the paid-amount rule applies.
        OVERDUE is not a valid target; only the sweep sets it.

        Raises:
            InvalidStatusTransitionError: Transition not in the table.
            CannotCancelWithPaymentsError: CANCELLED requested with payments.
        """
        new_status = PurchaseOrderStatus(new_status)
        if new_status == PurchaseOrderStatus.CANCELLED:
            return self.cancel(purchase_order_id, actor_id)

        po = self.lock(purchase_order_id)
        self._transition(po, new_status, actor_id)
        self.session.flush()
        return PurchaseOrderInfo.from_model(po)

    def update_purchase_order(
        self,
        purchase_order_id: UUID,
        changes: PurchaseOrderUpdate,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        """
        Edit descriptive fields, the due date, and optionally the status.

        Raises:
            ImmutableAfterTerminalError: Anything but notes on PAID/CANCELLED.
            InvalidStatusTransitionError: ``status`` not reachable.
        """
        provided = changes.provided()
        new_status = provided.pop("status", None)
        if new_status is not None and PurchaseOrderStatus(new_status) == PurchaseOrderStatus.CANCELLED:
            # Descriptive edits first, then the cancel rules.
            if provided:
                self.update_purchase_order(
                    purchase_order_id, PurchaseOrderUpdate(**provided), actor_id
                )
            return self.cancel(purchase_order_id, actor_id)

        po = self.lock(purchase_order_id)
        status = PurchaseOrderStatus(po.status)

        if status in TERMINAL_STATUSES:
            blocked = sorted(
                (set(provided) - _TERMINAL_EDITABLE_FIELDS)
                | ({"status"} if new_status is not None else set())
            )
            if blocked:
                raise ImmutableAfterTerminalError(po.po_number, status.value, blocked)

        for name, value in provided.items():
            setattr(po, name, value)
        if new_status is not None:
            self._transition(po, PurchaseOrderStatus(new_status), actor_id)

        po.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "purchase_order_updated",
            extra={
                "po_number": po.po_number,
                "fields": sorted(provided) + (["status"] if new_status else []),
                "actor_id": str(actor_id),
            },
        )
        return PurchaseOrderInfo.from_model(po)

    def cancel(self, purchase_order_id: UUID, actor_id: UUID) -> PurchaseOrderInfo:
        """
        Cancel a PO that has nothing paid against it.

        Raises:
            InvalidStatusTransitionError: PO already PAID or CANCELLED.
            CannotCancelWithPaymentsError: paid_amount > 0.
        """
        po = self.lock(purchase_order_id)
        status = PurchaseOrderStatus(po.status)

        if not can_transition(status, PurchaseOrderStatus.CANCELLED):
            raise InvalidStatusTransitionError(
                po.po_number, status.value, PurchaseOrderStatus.CANCELLED.value
            )
        if po.paid_amount > 0:
            raise CannotCancelWithPaymentsError(po.po_number, po.paid_amount)

        po.status = PurchaseOrderStatus.CANCELLED.value
        po.updated_by_id = actor_id
        self.session.flush()
        self._assert_invariants(po)

        logger.info(
            "purchase_order_cancelled",
            extra={
                "po_number": po.po_number,
                "from_status": status.value,
                "actor_id": str(actor_id),
            },
        )
        return PurchaseOrderInfo.from_model(po)

    def remove(self, purchase_order_id: UUID, actor_id: UUID) -> None:
        """
        Tombstone a PO with no payments applied.

        Raises:
            CannotDeleteWithPaymentHistoryError: paid_amount > 0.
        """
        po = self.lock(purchase_order_id)
        if po.paid_amount > 0:
            raise CannotDeleteWithPaymentHistoryError(po.po_number, po.paid_amount)

        po.deleted_at = self.clock.now_utc()
        po.deleted_by_id = actor_id
        po.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "purchase_order_removed",
            extra={"po_number": po.po_number, "actor_id": str(actor_id)},
        )

    # ------------------------------------------------------------------
    # Payment application (called by PaymentService under the PO lock)
    # ------------------------------------------------------------------

    def apply_payment(self, po: PurchaseOrder, amount: Decimal, actor_id: UUID) -> None:
        """Add ``amount`` to paid and re-derive outstanding and status."""
        paid = round_money(po.paid_amount + amount)
        self._set_paid(po, paid, actor_id, reason="payment")

    def reverse_payment(self, po: PurchaseOrder, amount: Decimal, actor_id: UUID) -> None:
        """Take a voided ``amount`` back off paid and re-derive status."""
        paid = round_money(po.paid_amount - amount)
        if paid < 0:
            logger.warning(
                "payment_reversal_below_zero",
                extra={"po_number": po.po_number, "paid_amount": po.paid_amount, "amount": amount},
            )
            raise LedgerInvariantError(
                po.po_number,
                "paid_non_negative",
                f"reversing {amount} from paid {po.paid_amount}",
            )
        self._set_paid(po, paid, actor_id, reason="void")

    def _set_paid(
        self, po: PurchaseOrder, paid: Decimal, actor_id: UUID, reason: str
    ) -> None:
        previous = po.status
        po.paid_amount = paid
        po.outstanding_amount = outstanding_for(po.total_amount, paid)
        po.status = derive_status(
            paid,
            po.total_amount,
            po.due_date,
            self.clock.today(),
            PurchaseOrderStatus(po.status),
        ).value
        po.updated_by_id = actor_id
        self.session.flush()
        self._assert_invariants(po)

        if po.status != previous:
            logger.info(
                "purchase_order_status_changed",
                extra={
                    "po_number": po.po_number,
                    "from_status": previous,
                    "to_status": po.status,
                    "reason": reason,
                },
            )

    # ------------------------------------------------------------------
    # Overdue sweep
    # ------------------------------------------------------------------

    def sweep_overdue(self, today: date, actor_id: UUID | None = None) -> int:
        """
        Move every eligible live PO past its due date to OVERDUE.

        The eligibility guard (due_date < today, outstanding > 0, status in
        PENDING/APPROVED/PARTIALLY_PAID) sits in the UPDATE's WHERE clause,
        so it is re-checked at write time against the committed row.
        Running it again with the same ``today`` affects nothing.

        Returns:
            Number of POs transitioned.
        """
        values: dict[str, object] = {
            "status": PurchaseOrderStatus.OVERDUE.value,
            "updated_at": func.now(),
        }
        if actor_id is not None:
            values["updated_by_id"] = actor_id

        result = self.session.execute(
            update(PurchaseOrder)
            .where(
                PurchaseOrder.due_date < today,
                PurchaseOrder.outstanding_amount > 0,
                PurchaseOrder.status.in_([s.value for s in SWEEPABLE_STATUSES]),
                PurchaseOrder.deleted_at.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self, purchase_order_id: UUID) -> PurchaseOrderInfo:
        """Re-check the monetary invariants of a PO as currently stored."""
        po = self._get(purchase_order_id)
        self._assert_invariants(po)
        return PurchaseOrderInfo.from_model(po)

    def _assert_invariants(self, po: PurchaseOrder) -> None:
        violations = invariant_violations(
            po.subtotal,
            po.discount_amount,
            po.tax_amount,
            po.total_amount,
            po.paid_amount,
            po.outstanding_amount,
            tolerance=self._tolerance,
        )
        status = PurchaseOrderStatus(po.status)
        if status in ITEMS_REQUIRED_STATUSES and not po.items:
            violations.append(("items_non_empty", f"no items while {status.value}"))
        if status == PurchaseOrderStatus.CANCELLED and po.paid_amount != 0:
            violations.append(
                ("cancelled_unpaid", f"cancelled with paid {po.paid_amount}")
            )

        if violations:
            invariant, detail = violations[0]
            logger.warning(
                "ledger_invariant_violated",
                extra={
                    "po_number": po.po_number,
                    "violations": [name for name, _ in violations],
                },
            )
            raise LedgerInvariantError(po.po_number, invariant, detail)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(
        self, po: PurchaseOrder, new_status: PurchaseOrderStatus, actor_id: UUID
    ) -> None:
        current = PurchaseOrderStatus(po.status)
        if not can_transition(current, new_status):
            raise InvalidStatusTransitionError(
                po.po_number, current.value, new_status.value
            )
        po.status = new_status.value
        po.updated_by_id = actor_id
        logger.info(
            "purchase_order_status_changed",
            extra={
                "po_number": po.po_number,
                "from_status": current.value,
                "to_status": new_status.value,
                "reason": "explicit",
                "actor_id": str(actor_id),
            },
        )

    def _recalculate(self, po: PurchaseOrder, actor_id: UUID) -> None:
        """Recompute totals from items; overrides do not survive this."""
        totals = compute_totals(self._line_amounts(row) for row in po.items)

        if totals.total_amount < po.paid_amount:
            logger.warning(
                "recalculation_below_paid",
                extra={
                    "po_number": po.po_number,
                    "total_amount": totals.total_amount,
                    "paid_amount": po.paid_amount,
                },
            )
            raise RecalculationInvariantViolationError(
                po.po_number, totals.total_amount, po.paid_amount
            )

        po.subtotal = totals.subtotal
        po.discount_amount = totals.discount_amount
        po.tax_amount = totals.tax_amount
        po.total_amount = totals.total_amount
        # Items only change while PENDING or APPROVED, so status stays put
        po.outstanding_amount = outstanding_for(po.total_amount, po.paid_amount)
        po.updated_by_id = actor_id
        self.session.flush()
        self._assert_invariants(po)

    def _require_item_mutable(self, po: PurchaseOrder, action: str) -> None:
        status = PurchaseOrderStatus(po.status)
        if status not in ITEM_MUTABLE_STATUSES:
            raise InvalidStateForMutationError(po.po_number, status.value, action)

    @staticmethod
    def _find_item(po: PurchaseOrder, item_id: UUID) -> PurchaseOrderItem:
        for row in po.items:
            if row.id == item_id:
                return row
        raise PurchaseOrderItemNotFoundError(str(po.id), str(item_id))

    @staticmethod
    def _validate_description(description: str) -> str:
        if not description or not description.strip():
            raise LedgerValidationError("description", "must not be empty")
        return description.strip()

    def _build_item(self, item: ItemInput, line_number: int) -> PurchaseOrderItem:
        row = PurchaseOrderItem(
            line_number=line_number,
            description=self._validate_description(item.description),
            quantity=validate_quantity(item.quantity),
            unit_price=validate_money(item.unit_price, "unit_price"),
            tax_rate=validate_percent(item.tax_rate, "tax_rate"),
            discount_percent=validate_percent(item.discount_percent, "discount_percent"),
            unit=item.unit,
            item_code=item.item_code,
        )
        row.line_total = self._line_amounts(row).line_total
        return row

    @staticmethod
    def _line_amounts(row: PurchaseOrderItem) -> LineAmounts:
        return compute_line(
            row.quantity, row.unit_price, row.tax_rate, row.discount_percent
        )
