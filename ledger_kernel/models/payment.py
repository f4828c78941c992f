"""
Module: ledger_kernel.models.payment
Responsibility: ORM persistence for payments applied against purchase orders.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - payment_reference is unique (uq_payment_reference).
    - purchase_order_id is set once at creation; the FK restricts deletion
      of the PO so payment history is never orphaned.
    - amount_paid > 0 (CHECK constraint).
    - status moves COMPLETED -> VOIDED only; PaymentService never writes
      COMPLETED over VOIDED.
    - Payments are never deleted.  A voided payment keeps every original
      field plus voided_at, void_reason and voided_by_id.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class Payment(TrackedBase):
    """A payment recorded against a purchase order."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_reference", name="uq_payment_reference"),
        CheckConstraint("amount_paid > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_po", "purchase_order_id"),
        Index("idx_payment_date", "payment_date"),
        Index("idx_payment_status", "status"),
    )

    payment_reference: Mapped[str] = mapped_column(String(50), nullable=False)

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    transaction_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Void metadata
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    voided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Payment {self.payment_reference} amount={self.amount_paid} "
            f"status={self.status}>"
        )
