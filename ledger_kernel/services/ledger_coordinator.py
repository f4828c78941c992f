"""
LedgerCoordinator -- unit-of-work boundary for every ledger mutation.

Responsibility:
    Runs each ledger operation as one database transaction: opens a
    session, builds the services on it, executes the work, commits on
    success and rolls back on any exception.  Transient failures are
    retried a bounded number of times.

Architecture position:
    Kernel > Services -- the outermost kernel component and the ONLY one
    that commits.  PurchaseOrderService, PaymentService, VendorService and
    ReferenceAllocator all flush inside the session it provides.

Invariants enforced:
    - All-or-nothing: a payment row and its PO update (or a void and its
      reversal) commit together or not at all.  Callers never observe one
      without the other.
    - Bounded retries: a unique-constraint collision on a generated
      reference re-runs the whole unit of work up to
      ``references.max_attempts`` times; a serialization or lock conflict
      is retried ``concurrency.max_retries`` times with exponential
      backoff.  Nothing else is retried.

Failure modes:
    - ReferenceGenerationFailedError -- reference collisions outlasted the
      attempt budget.
    - ConcurrentModificationError -- serialization/lock conflicts outlasted
      the retry budget.
    - Every LedgerError raised by a service propagates unchanged after
      rollback.

Audit relevance:
    Each unit of work binds ``correlation_id``, ``operation`` and
    ``actor_id`` into LogContext so every log line it produces can be
    grouped.  Retries log ``unit_of_work_retry``; rollbacks log
    ``transaction_rolled_back``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ledger_config.schema import LedgerSettings
from ledger_kernel.db.engine import build_engine
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    ItemInput,
    ItemUpdate,
    PaymentInfo,
    PurchaseOrderInfo,
    PurchaseOrderUpdate,
    VendorInfo,
)
from ledger_kernel.domain.status import PaymentMethod, PaymentTerms, PurchaseOrderStatus
from ledger_kernel.exceptions import (
    ConcurrentModificationError,
    ReferenceGenerationFailedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.purchase_order_service import PurchaseOrderService
from ledger_kernel.services.reference_allocator import ReferenceAllocator
from ledger_kernel.services.vendor_service import VendorService

logger = get_logger("services.ledger_coordinator")

T = TypeVar("T")

# Unique indexes whose violation means a reference collided.
_REFERENCE_CONSTRAINT_MARKERS = (
    "uq_purchase_order_number",
    "uq_payment_reference",
    "purchase_orders.po_number",
    "payments.payment_reference",
    "sequence_counters",
)

# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_PGCODES = frozenset({"40001", "40P01", "55P03"})


@dataclass
class UnitOfWork:
    """Services bound to one session for one transaction."""

    session: Session
    vendors: VendorService
    purchase_orders: PurchaseOrderService
    payments: PaymentService


class LedgerCoordinator:
    """
    Transaction script entry point for the ledger.

    Contract:
        Every public method runs in its own transaction and returns DTOs.
        Methods are safe to call concurrently from multiple threads; each
        call opens its own session from ``session_factory``.

    Usage:
        coordinator = LedgerCoordinator(session_factory, clock, settings)
        po = coordinator.create_purchase_order(vendor_id, items, actor_id)
        coordinator.update_po_status(po.id, PurchaseOrderStatus.APPROVED, actor_id)
        payment = coordinator.record_payment(po.id, Decimal("5000"), "bank_transfer", actor_id)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings()
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: LedgerSettings, clock: Clock | None = None
    ) -> LedgerCoordinator:
        """Build an engine and session factory from ``settings.database``."""
        engine = build_engine(
            settings.database.url,
            echo=settings.database.echo,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
        )
        factory = sessionmaker(bind=engine, expire_on_commit=False)
        return cls(factory, clock=clock, settings=settings)

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _build_unit(self, session: Session) -> UnitOfWork:
        width = self._settings.references.sequence_width
        allocator = ReferenceAllocator(session, self._clock, width)
        purchase_orders = PurchaseOrderService(
            session,
            self._clock,
            allocator,
            width,
            money_tolerance=self._settings.ledger.money_tolerance,
        )
        return UnitOfWork(
            session=session,
            vendors=VendorService(session, self._clock),
            purchase_orders=purchase_orders,
            payments=PaymentService(session, self._clock, purchase_orders, allocator),
        )

    def run(
        self,
        operation: str,
        work: Callable[[UnitOfWork], T],
        actor_id: UUID | None = None,
        **context: Any,
    ) -> T:
        """
        Execute ``work`` in a fresh transaction, retrying transient failures.

        ``work`` may run more than once, so it must not have side effects
        outside the session.
        """
        max_reference_attempts = self._settings.references.max_attempts
        max_conflict_retries = self._settings.concurrency.max_retries
        backoff = self._settings.concurrency.backoff_seconds

        reference_attempts = 0
        conflict_retries = 0

        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            actor_id=actor_id,
            **context,
        ):
            while True:
                session = self._session_factory()
                try:
                    result = work(self._build_unit(session))
                    session.commit()
                    logger.debug("transaction_committed")
                    return result
                except Exception as exc:
                    session.rollback()
                    if _is_reference_collision(exc):
                        reference_attempts += 1
                        if reference_attempts >= max_reference_attempts:
                            logger.warning(
                                "reference_generation_failed",
                                extra={"attempts": reference_attempts},
                            )
                            raise ReferenceGenerationFailedError(
                                operation, reference_attempts
                            ) from exc
                        logger.info(
                            "unit_of_work_retry",
                            extra={"reason": "reference_collision", "attempt": reference_attempts},
                        )
                        continue
                    if _is_serialization_failure(exc):
                        conflict_retries += 1
                        if conflict_retries > max_conflict_retries:
                            logger.warning(
                                "concurrent_modification",
                                extra={"attempts": conflict_retries},
                            )
                            raise ConcurrentModificationError(
                                operation, conflict_retries
                            ) from exc
                        delay = backoff * (2 ** (conflict_retries - 1))
                        logger.info(
                            "unit_of_work_retry",
                            extra={
                                "reason": "serialization_failure",
                                "attempt": conflict_retries,
                                "backoff_seconds": delay,
                            },
                        )
                        self._sleep(delay)
                        continue
                    logger.warning(
                        "transaction_rolled_back",
                        extra={"error_type": type(exc).__name__},
                    )
                    raise
                finally:
                    session.close()

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------

    def create_vendor(
        self,
        name: str,
        actor_id: UUID,
        payment_terms: PaymentTerms | int = PaymentTerms.NET_30,
        is_active: bool = True,
    ) -> VendorInfo:
        return self.run(
            "create_vendor",
            lambda uow: uow.vendors.create_vendor(name, actor_id, payment_terms, is_active),
            actor_id=actor_id,
        )

    def deactivate_vendor(self, vendor_id: UUID, actor_id: UUID) -> VendorInfo:
        return self.run(
            "deactivate_vendor",
            lambda uow: uow.vendors.deactivate_vendor(vendor_id, actor_id),
            actor_id=actor_id,
        )

    def get_vendor(self, vendor_id: UUID) -> VendorInfo:
        return self.run("get_vendor", lambda uow: uow.vendors.get_vendor(vendor_id))

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        vendor_id: UUID,
        items: Sequence[ItemInput],
        actor_id: UUID,
        po_date: date | None = None,
        tax_override: Decimal | None = None,
        discount_override: Decimal | None = None,
        notes: str | None = None,
        reference_number: str | None = None,
        shipping_address: str | None = None,
        billing_address: str | None = None,
    ) -> PurchaseOrderInfo:
        """Create a PENDING PO; retried on PO number collisions."""
        return self.run(
            "create_purchase_order",
            lambda uow: uow.purchase_orders.create_purchase_order(
                vendor_id,
                items,
                actor_id,
                po_date=po_date,
                tax_override=tax_override,
                discount_override=discount_override,
                notes=notes,
                reference_number=reference_number,
                shipping_address=shipping_address,
                billing_address=billing_address,
            ),
            actor_id=actor_id,
        )

    def add_item(
        self, purchase_order_id: UUID, item: ItemInput, actor_id: UUID
    ) -> PurchaseOrderInfo:
        return self.run(
            "add_item",
            lambda uow: uow.purchase_orders.add_item(purchase_order_id, item, actor_id),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def update_item(
        self,
        purchase_order_id: UUID,
        item_id: UUID,
        changes: ItemUpdate,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        return self.run(
            "update_item",
            lambda uow: uow.purchase_orders.update_item(
                purchase_order_id, item_id, changes, actor_id
            ),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def remove_item(
        self, purchase_order_id: UUID, item_id: UUID, actor_id: UUID
    ) -> PurchaseOrderInfo:
        return self.run(
            "remove_item",
            lambda uow: uow.purchase_orders.remove_item(purchase_order_id, item_id, actor_id),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def update_po_status(
        self,
        purchase_order_id: UUID,
        new_status: PurchaseOrderStatus,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        return self.run(
            "update_po_status",
            lambda uow: uow.purchase_orders.update_status(
                purchase_order_id, new_status, actor_id
            ),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def update_purchase_order(
        self,
        purchase_order_id: UUID,
        changes: PurchaseOrderUpdate,
        actor_id: UUID,
    ) -> PurchaseOrderInfo:
        return self.run(
            "update_purchase_order",
            lambda uow: uow.purchase_orders.update_purchase_order(
                purchase_order_id, changes, actor_id
            ),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def cancel_po(self, purchase_order_id: UUID, actor_id: UUID) -> PurchaseOrderInfo:
        return self.run(
            "cancel_po",
            lambda uow: uow.purchase_orders.cancel(purchase_order_id, actor_id),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def remove_po(self, purchase_order_id: UUID, actor_id: UUID) -> None:
        self.run(
            "remove_po",
            lambda uow: uow.purchase_orders.remove(purchase_order_id, actor_id),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        purchase_order_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        actor_id: UUID,
        payment_date: date | None = None,
        transaction_reference: str | None = None,
        bank_name: str | None = None,
        cheque_number: str | None = None,
        notes: str | None = None,
    ) -> PaymentInfo:
        """Insert a payment and apply it to its PO in one transaction."""
        return self.run(
            "record_payment",
            lambda uow: uow.payments.record_payment(
                purchase_order_id,
                amount,
                method,
                actor_id,
                payment_date=payment_date,
                transaction_reference=transaction_reference,
                bank_name=bank_name,
                cheque_number=cheque_number,
                notes=notes,
            ),
            actor_id=actor_id,
            purchase_order_id=purchase_order_id,
        )

    def void_payment(self, payment_id: UUID, reason: str, actor_id: UUID) -> PaymentInfo:
        """Void a payment and reverse it on its PO in one transaction."""
        return self.run(
            "void_payment",
            lambda uow: uow.payments.void_payment(payment_id, reason, actor_id),
            actor_id=actor_id,
            payment_id=payment_id,
        )

    # ------------------------------------------------------------------
    # Sweep and checks
    # ------------------------------------------------------------------

    def sweep_overdue(self, today: date | None = None, actor_id: UUID | None = None) -> int:
        """Transition every eligible PO past its due date to OVERDUE."""
        today = today or self._clock.today()
        return self.run(
            "sweep_overdue",
            lambda uow: uow.purchase_orders.sweep_overdue(today, actor_id),
            actor_id=actor_id,
        )

    def verify_invariants(self, purchase_order_id: UUID) -> PurchaseOrderInfo:
        """
        Re-check the committed monetary invariants of one PO.

        Raises:
            LedgerInvariantError: A stored PO fails a check.
        """
        return self.run(
            "verify_invariants",
            lambda uow: uow.purchase_orders.check_invariants(purchase_order_id),
            purchase_order_id=purchase_order_id,
        )


def _is_reference_collision(exc: BaseException) -> bool:
    if not isinstance(exc, IntegrityError):
        return False
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in _REFERENCE_CONSTRAINT_MARKERS)


def _is_serialization_failure(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _RETRYABLE_PGCODES:
        return True
    return "database is locked" in str(orig)
