"""ORM models for the ledger kernel."""

from ledger_kernel.models.payment import Payment
from ledger_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.models.vendor import Vendor

__all__ = [
    "Vendor",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "Payment",
    "SequenceCounter",
]
