"""Pure domain core: status machine, totals, references, DTOs, clock."""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    ItemInput,
    ItemUpdate,
    Page,
    PaymentFilter,
    PaymentInfo,
    PurchaseOrderFilter,
    PurchaseOrderInfo,
    PurchaseOrderItemInfo,
    PurchaseOrderUpdate,
    SweepReport,
    VendorInfo,
)
from ledger_kernel.domain.references import ReferencePrefix, format_reference, parse_reference
from ledger_kernel.domain.status import (
    VALID_TRANSITIONS,
    PaymentMethod,
    PaymentStatus,
    PaymentTerms,
    PurchaseOrderStatus,
    can_transition,
    derive_status,
)
from ledger_kernel.domain.totals import compute_line, compute_totals

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ItemInput",
    "ItemUpdate",
    "PurchaseOrderUpdate",
    "PurchaseOrderFilter",
    "PaymentFilter",
    "VendorInfo",
    "PurchaseOrderInfo",
    "PurchaseOrderItemInfo",
    "PaymentInfo",
    "Page",
    "SweepReport",
    "ReferencePrefix",
    "format_reference",
    "parse_reference",
    "PurchaseOrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "PaymentTerms",
    "VALID_TRANSITIONS",
    "can_transition",
    "derive_status",
    "compute_line",
    "compute_totals",
]
