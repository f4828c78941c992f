"""
Module: ledger_kernel.models.vendor
Responsibility: ORM persistence for the vendors purchase orders are raised
    against.  The ledger reads only ``payment_terms_days`` and ``is_active``.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - payment_terms_days is one of the PaymentTerms values (0, -7, 15, 30,
      45, 60); checked by VendorService, not at the ORM level.
"""

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Vendor(TrackedBase):
    """A supplier that purchase orders are raised against."""

    __tablename__ = "vendors"

    __table_args__ = (
        Index("idx_vendor_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Negative means due before the PO date (advance payment)
    payment_terms_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=30,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return f"<Vendor {self.name} terms={self.payment_terms_days}>"
