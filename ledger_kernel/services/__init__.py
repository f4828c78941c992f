"""Services - the imperative shell around the ledger's domain core."""

from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_coordinator import LedgerCoordinator, UnitOfWork
from ledger_kernel.services.overdue_sweeper import OverdueSweeper
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.purchase_order_service import PurchaseOrderService
from ledger_kernel.services.reference_allocator import ReferenceAllocator
from ledger_kernel.services.vendor_service import VendorService

__all__ = [
    "BaseService",
    "LedgerCoordinator",
    "UnitOfWork",
    "OverdueSweeper",
    "PaymentService",
    "PurchaseOrderService",
    "ReferenceAllocator",
    "VendorService",
]
