"""Selectors - read-only queries returning DTOs."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.payment_selector import PaymentSelector
from ledger_kernel.selectors.purchase_order_selector import PurchaseOrderSelector

__all__ = [
    "BaseSelector",
    "PaymentSelector",
    "PurchaseOrderSelector",
]
