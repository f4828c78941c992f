"""
DTOs -- immutable inputs and outputs of the ledger.

Responsibility:
    Defines the frozen dataclasses that cross the ledger boundary: item and
    PO change requests coming in, and Vendor/PurchaseOrder/Payment snapshots
    and pages going out.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from
    services/ and selectors/, never from domain logic.

Invariants enforced:
    - Callers never receive ORM entities; every public service, coordinator
      and selector method returns one of these types.
    - Monetary fields are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from math import ceil
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import UUID

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.status import (
    TERMINAL_STATUSES,
    PaymentMethod,
    PaymentStatus,
    PurchaseOrderStatus,
)

if TYPE_CHECKING:
    from ledger_kernel.models.payment import Payment as PaymentModel
    from ledger_kernel.models.purchase_order import (
        PurchaseOrder as PurchaseOrderModel,
    )
    from ledger_kernel.models.purchase_order import (
        PurchaseOrderItem as PurchaseOrderItemModel,
    )
    from ledger_kernel.models.vendor import Vendor as VendorModel

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ItemInput:
    """A new line item."""

    description: str
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    discount_percent: Decimal = ZERO
    unit: str | None = None
    item_code: str | None = None


@dataclass(frozen=True)
class ItemUpdate:
    """Partial update of a line item; None leaves a field unchanged."""

    description: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    tax_rate: Decimal | None = None
    discount_percent: Decimal | None = None
    unit: str | None = None
    item_code: str | None = None

    def provided(self) -> dict[str, object]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class PurchaseOrderUpdate:
    """
    Partial update of a purchase order's descriptive fields.

    None leaves a field unchanged.  ``status`` is validated against the
    transition table; CANCELLED is routed through the cancel rules.
    """

    notes: str | None = None
    reference_number: str | None = None
    shipping_address: str | None = None
    billing_address: str | None = None
    due_date: date | None = None
    status: PurchaseOrderStatus | None = None

    def provided(self) -> dict[str, object]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class PurchaseOrderFilter:
    """Listing filters for purchase orders."""

    vendor_id: UUID | None = None
    status: PurchaseOrderStatus | None = None
    search: str | None = None
    po_date_from: date | None = None
    po_date_to: date | None = None
    due_date_from: date | None = None
    due_date_to: date | None = None
    overdue_as_of: date | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None


@dataclass(frozen=True)
class PaymentFilter:
    """Listing filters for payments."""

    purchase_order_id: UUID | None = None
    vendor_id: UUID | None = None
    method: PaymentMethod | None = None
    status: PaymentStatus | None = None
    search: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VendorInfo:
    id: UUID
    name: str
    payment_terms_days: int
    is_active: bool

    @classmethod
    def from_model(cls, model: VendorModel) -> VendorInfo:
        return cls(
            id=model.id,
            name=model.name,
            payment_terms_days=model.payment_terms_days,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class PurchaseOrderItemInfo:
    id: UUID
    line_number: int
    description: str
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal
    discount_percent: Decimal
    line_total: Decimal
    unit: str | None
    item_code: str | None

    @classmethod
    def from_model(cls, model: PurchaseOrderItemModel) -> PurchaseOrderItemInfo:
        return cls(
            id=model.id,
            line_number=model.line_number,
            description=model.description,
            quantity=model.quantity,
            unit_price=model.unit_price,
            tax_rate=model.tax_rate,
            discount_percent=model.discount_percent,
            line_total=model.line_total,
            unit=model.unit,
            item_code=model.item_code,
        )


@dataclass(frozen=True)
class PurchaseOrderInfo:
    """
    Snapshot of a purchase order and its items.

    Guarantees:
        - ``items`` is ordered by line_number.
        - ``status`` is a PurchaseOrderStatus member, not a raw string.
    """

    id: UUID
    po_number: str
    vendor_id: UUID
    po_date: date
    due_date: date
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: PurchaseOrderStatus
    notes: str | None = None
    reference_number: str | None = None
    shipping_address: str | None = None
    billing_address: str | None = None
    items: tuple[PurchaseOrderItemInfo, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def from_model(cls, model: PurchaseOrderModel) -> PurchaseOrderInfo:
        return cls(
            id=model.id,
            po_number=model.po_number,
            vendor_id=model.vendor_id,
            po_date=model.po_date,
            due_date=model.due_date,
            subtotal=model.subtotal,
            tax_amount=model.tax_amount,
            discount_amount=model.discount_amount,
            total_amount=model.total_amount,
            paid_amount=model.paid_amount,
            outstanding_amount=model.outstanding_amount,
            status=PurchaseOrderStatus(model.status),
            notes=model.notes,
            reference_number=model.reference_number,
            shipping_address=model.shipping_address,
            billing_address=model.billing_address,
            items=tuple(
                PurchaseOrderItemInfo.from_model(item)
                for item in sorted(model.items, key=lambda i: i.line_number)
            ),
            created_at=model.created_at,
            updated_at=model.updated_at,
            deleted_at=model.deleted_at,
        )


@dataclass(frozen=True)
class PaymentInfo:
    """Snapshot of a payment.  Voided payments keep every original field."""

    id: UUID
    payment_reference: str
    purchase_order_id: UUID
    amount_paid: Decimal
    payment_date: date
    method: PaymentMethod
    status: PaymentStatus
    transaction_reference: str | None = None
    bank_name: str | None = None
    cheque_number: str | None = None
    notes: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    voided_by_id: UUID | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_voided(self) -> bool:
        return self.status == PaymentStatus.VOIDED

    @classmethod
    def from_model(cls, model: PaymentModel) -> PaymentInfo:
        return cls(
            id=model.id,
            payment_reference=model.payment_reference,
            purchase_order_id=model.purchase_order_id,
            amount_paid=model.amount_paid,
            payment_date=model.payment_date,
            method=PaymentMethod(model.method),
            status=PaymentStatus(model.status),
            transaction_reference=model.transaction_reference,
            bank_name=model.bank_name,
            cheque_number=model.cheque_number,
            notes=model.notes,
            voided_at=model.voided_at,
            void_reason=model.void_reason,
            voided_by_id=model.voided_by_id,
            created_by_id=model.created_by_id,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing plus pagination metadata."""

    items: tuple[T, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class SweepReport:
    """Outcome of one overdue sweep."""

    today: date
    affected: int
