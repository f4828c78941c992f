"""
Module: ledger_kernel.selectors.purchase_order_selector
Responsibility: Read-only lookups and listings of purchase orders.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tombstoned POs (deleted_at set) are excluded unless asked for.
    - Sorting is restricted to a whitelist of columns; anything else falls
      back to created_at.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Select, or_, select

from ledger_kernel.domain.dtos import Page, PurchaseOrderFilter, PurchaseOrderInfo
from ledger_kernel.domain.status import TERMINAL_STATUSES, PurchaseOrderStatus
from ledger_kernel.models.purchase_order import PurchaseOrder
from ledger_kernel.selectors.base import (
    DEFAULT_PAGE_SIZE,
    LIKE_ESCAPE,
    BaseSelector,
    contains_pattern,
)

SORTABLE_FIELDS = {
    "po_number": PurchaseOrder.po_number,
    "po_date": PurchaseOrder.po_date,
    "due_date": PurchaseOrder.due_date,
    "total_amount": PurchaseOrder.total_amount,
    "outstanding_amount": PurchaseOrder.outstanding_amount,
    "created_at": PurchaseOrder.created_at,
    "status": PurchaseOrder.status,
}

# Statuses still listed as overdue once past due.
_OPEN_STATUSES = [
    s.value for s in PurchaseOrderStatus if s not in TERMINAL_STATUSES
]


class PurchaseOrderSelector(BaseSelector[PurchaseOrder]):
    """Queries over purchase orders returning PurchaseOrderInfo."""

    def get(
        self, purchase_order_id, include_deleted: bool = False
    ) -> PurchaseOrderInfo | None:
        po = self.session.get(PurchaseOrder, purchase_order_id)
        if po is None or (po.is_deleted and not include_deleted):
            return None
        return PurchaseOrderInfo.from_model(po)

    def get_by_number(self, po_number: str) -> PurchaseOrderInfo | None:
        po = self.session.execute(
            select(PurchaseOrder).where(
                PurchaseOrder.po_number == po_number,
                PurchaseOrder.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        return PurchaseOrderInfo.from_model(po) if po else None

    def list(
        self,
        filters: PurchaseOrderFilter | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Page[PurchaseOrderInfo]:
        """
        Filtered, sorted, paginated listing.

        ``sort_by`` outside SORTABLE_FIELDS sorts by created_at.
        """
        self._check_paging(page, limit)
        stmt = self._apply_filters(
            select(PurchaseOrder).where(PurchaseOrder.deleted_at.is_(None)),
            filters or PurchaseOrderFilter(),
        )
        total = self._count(stmt)

        column = SORTABLE_FIELDS.get(sort_by, PurchaseOrder.created_at)
        stmt = stmt.order_by(
            column.desc() if descending else column.asc(),
            PurchaseOrder.po_number.desc() if descending else PurchaseOrder.po_number.asc(),
        )
        rows = self.session.execute(
            stmt.offset((page - 1) * limit).limit(limit)
        ).scalars().all()

        return Page(
            items=tuple(PurchaseOrderInfo.from_model(po) for po in rows),
            total=total,
            page=page,
            limit=limit,
        )

    def list_overdue(self, today: date) -> list[PurchaseOrderInfo]:
        """Open POs past due with a balance remaining, oldest due date first."""
        rows = self.session.execute(
            select(PurchaseOrder)
            .where(
                PurchaseOrder.deleted_at.is_(None),
                PurchaseOrder.due_date < today,
                PurchaseOrder.outstanding_amount > 0,
                PurchaseOrder.status.in_(_OPEN_STATUSES),
            )
            .order_by(PurchaseOrder.due_date.asc(), PurchaseOrder.po_number.asc())
        ).scalars().all()
        return [PurchaseOrderInfo.from_model(po) for po in rows]

    def list_for_vendor(self, vendor_id) -> list[PurchaseOrderInfo]:
        rows = self.session.execute(
            select(PurchaseOrder)
            .where(
                PurchaseOrder.vendor_id == vendor_id,
                PurchaseOrder.deleted_at.is_(None),
            )
            .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.po_number.desc())
        ).scalars().all()
        return [PurchaseOrderInfo.from_model(po) for po in rows]

    @staticmethod
    def _apply_filters(stmt: Select, f: PurchaseOrderFilter) -> Select:
        if f.vendor_id is not None:
            stmt = stmt.where(PurchaseOrder.vendor_id == f.vendor_id)
        if f.status is not None:
            stmt = stmt.where(PurchaseOrder.status == PurchaseOrderStatus(f.status).value)
        if f.search:
            pattern = contains_pattern(f.search)
            stmt = stmt.where(
                or_(
                    PurchaseOrder.po_number.like(pattern, escape=LIKE_ESCAPE),
                    PurchaseOrder.reference_number.like(pattern, escape=LIKE_ESCAPE),
                )
            )
        if f.po_date_from is not None:
            stmt = stmt.where(PurchaseOrder.po_date >= f.po_date_from)
        if f.po_date_to is not None:
            stmt = stmt.where(PurchaseOrder.po_date <= f.po_date_to)
        if f.due_date_from is not None:
            stmt = stmt.where(PurchaseOrder.due_date >= f.due_date_from)
        if f.due_date_to is not None:
            stmt = stmt.where(PurchaseOrder.due_date <= f.due_date_to)
        if f.overdue_as_of is not None:
            stmt = stmt.where(
                PurchaseOrder.due_date < f.overdue_as_of,
                PurchaseOrder.outstanding_amount > 0,
                PurchaseOrder.status.in_(_OPEN_STATUSES),
            )
        if f.min_amount is not None:
            stmt = stmt.where(PurchaseOrder.total_amount >= f.min_amount)
        if f.max_amount is not None:
            stmt = stmt.where(PurchaseOrder.total_amount <= f.max_amount)
        return stmt
