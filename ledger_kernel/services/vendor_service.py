"""
Service layer for Vendor lookups.

The ledger reads ``payment_terms_days`` and ``is_active`` from vendors when
creating purchase orders.  Returns VendorInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from uuid import UUID

from ledger_kernel.domain.dtos import VendorInfo
from ledger_kernel.domain.status import PaymentTerms
from ledger_kernel.exceptions import LedgerValidationError, VendorNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.vendor import Vendor
from ledger_kernel.services.base import BaseService

logger = get_logger("services.vendor")


class VendorService(BaseService[Vendor]):
    """Create, look up and deactivate vendors."""

    def _get(self, vendor_id: UUID) -> Vendor:
        vendor = self.session.get(Vendor, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(str(vendor_id))
        return vendor

    def get_vendor(self, vendor_id: UUID) -> VendorInfo:
        """
        Get vendor by ID.

        Raises:
            VendorNotFoundError: If vendor doesn't exist.
        """
        return VendorInfo.from_model(self._get(vendor_id))

    def create_vendor(
        self,
        name: str,
        actor_id: UUID,
        payment_terms: PaymentTerms | int = PaymentTerms.NET_30,
        is_active: bool = True,
    ) -> VendorInfo:
        """
        Create a vendor.

        Raises:
            LedgerValidationError: Empty name or unsupported payment terms.
        """
        if not name or not name.strip():
            raise LedgerValidationError("name", "must not be empty")
        try:
            terms = PaymentTerms(int(payment_terms))
        except ValueError as exc:
            raise LedgerValidationError(
                "payment_terms_days",
                f"{payment_terms} is not one of {[t.value for t in PaymentTerms]}",
            ) from exc

        vendor = Vendor(
            name=name.strip(),
            payment_terms_days=terms.value,
            is_active=is_active,
            created_by_id=actor_id,
        )
        self.session.add(vendor)
        self.session.flush()

        logger.info(
            "vendor_created",
            extra={
                "vendor_id": str(vendor.id),
                "payment_terms_days": terms.value,
                "actor_id": str(actor_id),
            },
        )
        return VendorInfo.from_model(vendor)

    def deactivate_vendor(self, vendor_id: UUID, actor_id: UUID) -> VendorInfo:
        """Mark a vendor inactive; new POs against it are rejected."""
        vendor = self._get(vendor_id)
        vendor.is_active = False
        vendor.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "vendor_deactivated",
            extra={"vendor_id": str(vendor_id), "actor_id": str(actor_id)},
        )
        return VendorInfo.from_model(vendor)
