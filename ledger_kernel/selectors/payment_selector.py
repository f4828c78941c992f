"""
Module: ledger_kernel.selectors.payment_selector
Responsibility: Read-only lookups and listings of payments, voided ones
    included (payments are never deleted).
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from sqlalchemy import Select, or_, select

from ledger_kernel.domain.dtos import Page, PaymentFilter, PaymentInfo
from ledger_kernel.domain.status import PaymentMethod, PaymentStatus
from ledger_kernel.models.payment import Payment
from ledger_kernel.models.purchase_order import PurchaseOrder
from ledger_kernel.selectors.base import (
    DEFAULT_PAGE_SIZE,
    LIKE_ESCAPE,
    BaseSelector,
    contains_pattern,
)

SORTABLE_FIELDS = {
    "payment_reference": Payment.payment_reference,
    "payment_date": Payment.payment_date,
    "amount_paid": Payment.amount_paid,
    "created_at": Payment.created_at,
    "status": Payment.status,
}


class PaymentSelector(BaseSelector[Payment]):
    """Queries over payments returning PaymentInfo."""

    def get(self, payment_id) -> PaymentInfo | None:
        payment = self.session.get(Payment, payment_id)
        return PaymentInfo.from_model(payment) if payment else None

    def get_by_reference(self, payment_reference: str) -> PaymentInfo | None:
        payment = self.session.execute(
            select(Payment).where(Payment.payment_reference == payment_reference)
        ).scalar_one_or_none()
        return PaymentInfo.from_model(payment) if payment else None

    def list_for_purchase_order(self, purchase_order_id) -> list[PaymentInfo]:
        """All payments on a PO in the order they were referenced."""
        rows = self.session.execute(
            select(Payment)
            .where(Payment.purchase_order_id == purchase_order_id)
            .order_by(Payment.payment_reference.asc())
        ).scalars().all()
        return [PaymentInfo.from_model(p) for p in rows]

    def list(
        self,
        filters: PaymentFilter | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Page[PaymentInfo]:
        self._check_paging(page, limit)
        stmt = self._apply_filters(select(Payment), filters or PaymentFilter())
        total = self._count(stmt)

        column = SORTABLE_FIELDS.get(sort_by, Payment.created_at)
        stmt = stmt.order_by(
            column.desc() if descending else column.asc(),
            Payment.payment_reference.desc() if descending else Payment.payment_reference.asc(),
        )
        rows = self.session.execute(
            stmt.offset((page - 1) * limit).limit(limit)
        ).scalars().all()
        return Page(
            items=tuple(PaymentInfo.from_model(p) for p in rows),
            total=total,
            page=page,
            limit=limit,
        )

    @staticmethod
    def _apply_filters(stmt: Select, f: PaymentFilter) -> Select:
        if f.purchase_order_id is not None:
            stmt = stmt.where(Payment.purchase_order_id == f.purchase_order_id)
        if f.vendor_id is not None:
            stmt = stmt.join(
                PurchaseOrder, PurchaseOrder.id == Payment.purchase_order_id
            ).where(PurchaseOrder.vendor_id == f.vendor_id)
        if f.method is not None:
            stmt = stmt.where(Payment.method == PaymentMethod(f.method).value)
        if f.status is not None:
            stmt = stmt.where(Payment.status == PaymentStatus(f.status).value)
        if f.search:
            pattern = contains_pattern(f.search)
            stmt = stmt.where(
                or_(
                    Payment.payment_reference.like(pattern, escape=LIKE_ESCAPE),
                    Payment.transaction_reference.like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if f.date_from is not None:
            stmt = stmt.where(Payment.payment_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(Payment.payment_date <= f.date_to)
        if f.min_amount is not None:
            stmt = stmt.where(Payment.amount_paid >= f.min_amount)
        if f.max_amount is not None:
            stmt = stmt.where(Payment.amount_paid <= f.max_amount)
        return stmt
