"""
Module: ledger_kernel.models.purchase_order
Responsibility: ORM persistence for purchase orders and their line items.
    Stores the computed monetary fields (subtotal, tax, discount, total,
    paid, outstanding) alongside the items they are derived from.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced (by PurchaseOrderService, re-checked by the coordinator):
    - total_amount == subtotal - discount_amount + tax_amount.
    - paid_amount + outstanding_amount == total_amount (within 0.01).
    - paid_amount >= 0 and outstanding_amount >= 0 (CHECK constraints).
    - po_number is unique (uq_purchase_order_number).
    - Items are owned: cascade-deleted with their PO, never shared.
    - Never hard-deleted through the ledger; deleted_at tombstones a PO.

Failure modes:
    - IntegrityError on duplicate po_number (concurrent allocation race that
      the coordinator retries).
    - IntegrityError on negative paid/outstanding (CHECK constraint).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString


class PurchaseOrder(TrackedBase):
    """
    A commitment to pay a vendor across one or more line items.

    Guarantees:
        - status holds a PurchaseOrderStatus value (stored as its string).
        - items are loaded eagerly (selectin) and ordered by line_number.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_order_number"),
        CheckConstraint("paid_amount >= 0", name="ck_po_paid_non_negative"),
        CheckConstraint("outstanding_amount >= 0", name="ck_po_outstanding_non_negative"),
        Index("idx_po_vendor", "vendor_id"),
        Index("idx_po_status", "status"),
        Index("idx_po_due_date", "due_date"),
        Index("idx_po_status_due", "status", "due_date"),
    )

    po_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    vendor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        nullable=False,
    )

    po_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)

    # Monetary fields, Numeric(15, 2)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    outstanding_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Tombstone
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.line_number",
        lazy="selectin",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrder {self.po_number} status={self.status} "
            f"total={self.total_amount} paid={self.paid_amount}>"
        )


class PurchaseOrderItem(Base):
    """One line of a purchase order."""

    __tablename__ = "purchase_order_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_po_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_po_item_price_non_negative"),
        Index("idx_po_item_po", "purchase_order_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    item_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    purchase_order: Mapped["PurchaseOrder"] = relationship(
        "PurchaseOrder",
        back_populates="items",
    )

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderItem #{self.line_number} {self.description!r} "
            f"qty={self.quantity} total={self.line_total}>"
        )
