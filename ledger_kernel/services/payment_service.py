"""
PaymentService -- the payment aggregate.

Responsibility:
    Records payments against purchase orders and voids them.  Each
    operation touches two aggregates (the Payment row and its PO) and must
    run inside a single transaction owned by LedgerCoordinator.

Architecture position:
    Kernel > Services -- imperative shell.  Uses PurchaseOrderService for
    the PO side (lock, apply, reverse) and ReferenceAllocator for payment
    references.

Invariants enforced:
    - No over-payment: the amount is checked against outstanding_amount
      while the PO row is locked, so two concurrent payments cannot both
      pass the check.
    - Void is one-way: COMPLETED -> VOIDED, never back.  The row is kept.
    - Lock order is PO then payment for every operation.

Failure modes:
    - PurchaseOrderNotFoundError, PaymentNotFoundError.
    - InvalidPoStateForPaymentError on PENDING/PAID/CANCELLED POs.
    - PaymentExceedsOutstandingError when amount > outstanding_amount.
    - PaymentAlreadyVoidedError on a second void.
    - LedgerValidationError for a non-positive amount, more than two
      decimal places, an unknown method, or an empty/oversized reason.

Audit relevance:
    ``payment_recorded`` and ``payment_voided`` are logged at INFO with the
    amount, payment reference, po_number and actor_id.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import PaymentInfo
from ledger_kernel.domain.references import DEFAULT_SEQUENCE_WIDTH, ReferencePrefix
from ledger_kernel.domain.status import (
    PAYABLE_STATUSES,
    PaymentMethod,
    PaymentStatus,
    PurchaseOrderStatus,
)
from ledger_kernel.domain.totals import validate_money
from ledger_kernel.exceptions import (
    InvalidPoStateForPaymentError,
    LedgerValidationError,
    PaymentAlreadyVoidedError,
    PaymentExceedsOutstandingError,
    PaymentNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.payment import Payment
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.purchase_order_service import PurchaseOrderService
from ledger_kernel.services.reference_allocator import ReferenceAllocator

logger = get_logger("services.payment")

MAX_VOID_REASON_LENGTH = 500


class PaymentService(BaseService[Payment]):
    """
    Service for recording and voiding payments.

    Non-goals:
        - Does NOT commit.  LedgerCoordinator owns the transaction.
        - Does NOT contact a payment gateway; this is record keeping.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        purchase_orders: PurchaseOrderService | None = None,
        allocator: ReferenceAllocator | None = None,
        sequence_width: int = DEFAULT_SEQUENCE_WIDTH,
    ):
        super().__init__(session, clock)
        self._allocator = allocator or ReferenceAllocator(
            session, self.clock, sequence_width
        )
        self._purchase_orders = purchase_orders or PurchaseOrderService(
            session, self.clock, self._allocator
        )

    def _get(self, payment_id: UUID, for_update: bool = False) -> Payment:
        stmt = select(Payment).where(Payment.id == payment_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        payment = self.session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        return PaymentInfo.from_model(self._get(payment_id))

    def record_payment(
        self,
        purchase_order_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        payment_date: date | None = None,
        transaction_reference: str | None = None,
        bank_name: str | None = None,
        cheque_number: str | None = None,
        notes: str | None = None,
    ) -> PaymentInfo:
        """
        Record a payment and apply it to its purchase order.

        Preconditions:
            - The PO exists, is live, and is APPROVED, PARTIALLY_PAID or
              OVERDUE.
            - 0 < amount <= outstanding_amount, at most two decimal places.

        Postconditions:
            - A COMPLETED Payment row exists with a fresh PAY reference.
            - PO paid_amount increased by amount; outstanding and status
              re-derived (PAID when nothing remains, else PARTIALLY_PAID).

        Raises:
            PurchaseOrderNotFoundError, InvalidPoStateForPaymentError,
            PaymentExceedsOutstandingError, LedgerValidationError.
        """
        amount = validate_money(amount, "amount", allow_zero=False)
        method = self._validate_method(method)

        po = self._purchase_orders.lock(purchase_order_id)
        status = PurchaseOrderStatus(po.status)

        if status not in PAYABLE_STATUSES:
            raise InvalidPoStateForPaymentError(po.po_number, status.value)

        if amount > po.outstanding_amount:
            logger.warning(
                "payment_exceeds_outstanding",
                extra={
                    "po_number": po.po_number,
                    "amount": amount,
                    "outstanding_amount": po.outstanding_amount,
                },
            )
            raise PaymentExceedsOutstandingError(
                po.po_number, amount, po.outstanding_amount
            )

        reference = self._allocator.next_reference(ReferencePrefix.PAYMENT)
        payment = Payment(
            payment_reference=reference,
            purchase_order_id=po.id,
            amount_paid=amount,
            payment_date=payment_date or self.clock.today(),
            method=method.value,
            status=PaymentStatus.COMPLETED.value,
            transaction_reference=transaction_reference,
            bank_name=bank_name,
            cheque_number=cheque_number,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(payment)
        self.session.flush()

        self._purchase_orders.apply_payment(po, amount, actor_id)

        logger.info(
            "payment_recorded",
            extra={
                "payment_reference": reference,
                "payment_id": str(payment.id),
                "po_number": po.po_number,
                "amount": amount,
                "method": method.value,
                "paid_amount": po.paid_amount,
                "outstanding_amount": po.outstanding_amount,
                "po_status": po.status,
                "actor_id": str(actor_id),
            },
        )
        return PaymentInfo.from_model(payment)

    def void_payment(self, payment_id: UUID, reason: str, actor_id: UUID) -> PaymentInfo:
        """
        Void a completed payment and take its amount back off the PO.

        Postconditions:
            - Payment status is VOIDED with voided_at, void_reason and
              voided_by_id set; every other field is unchanged.
            - PO paid_amount decreased by the payment amount; status is
              PARTIALLY_PAID if something remains paid, otherwise APPROVED
              (or OVERDUE when the due date has passed).

        Raises:
            PaymentNotFoundError, PaymentAlreadyVoidedError,
            LedgerValidationError.
        """
        reason = self._validate_reason(reason)

        # Find the PO first so locks are always taken PO -> payment.
        unlocked = self._get(payment_id)
        if unlocked.status == PaymentStatus.VOIDED.value:
            raise PaymentAlreadyVoidedError(unlocked.payment_reference)

        po = self._purchase_orders.lock(unlocked.purchase_order_id)
        payment = self._get(payment_id, for_update=True)

        # A concurrent void may have committed while we waited for the lock
        if payment.status == PaymentStatus.VOIDED.value:
            raise PaymentAlreadyVoidedError(payment.payment_reference)

        payment.status = PaymentStatus.VOIDED.value
        payment.voided_at = self.clock.now_utc()
        payment.void_reason = reason
        payment.voided_by_id = actor_id
        payment.updated_by_id = actor_id
        self.session.flush()

        self._purchase_orders.reverse_payment(po, payment.amount_paid, actor_id)

        logger.info(
            "payment_voided",
            extra={
                "payment_reference": payment.payment_reference,
                "payment_id": str(payment.id),
                "po_number": po.po_number,
                "amount": payment.amount_paid,
                "void_reason": reason,
                "paid_amount": po.paid_amount,
                "outstanding_amount": po.outstanding_amount,
                "po_status": po.status,
                "actor_id": str(actor_id),
            },
        )
        return PaymentInfo.from_model(payment)

    @staticmethod
    def _validate_method(method: PaymentMethod | str) -> PaymentMethod:
        try:
            return PaymentMethod(method)
        except ValueError as exc:
            raise LedgerValidationError(
                "method", f"{method!r} is not one of {[m.value for m in PaymentMethod]}"
            ) from exc

    @staticmethod
    def _validate_reason(reason: str) -> str:
        if not reason or not reason.strip():
            raise LedgerValidationError("reason", "a void reason is required")
        reason = reason.strip()
        if len(reason) > MAX_VOID_REASON_LENGTH:
            raise LedgerValidationError(
                "reason", f"must be at most {MAX_VOID_REASON_LENGTH} characters"
            )
        return reason
