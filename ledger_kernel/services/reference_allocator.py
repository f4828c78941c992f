"""
ReferenceAllocator -- date-scoped reference numbers via locked counter rows.

Responsibility:
    Hands out ``PO-YYYYMMDD-NNN`` and ``PAY-YYYYMMDD-NNN`` identifiers.  One
    counter row per prefix and calendar day holds the last suffix issued.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by PurchaseOrderService (PO numbers) and PaymentService
    (payment references) inside the coordinator's transaction.

Invariants enforced:
    - Uniqueness under concurrent writers: the counter row is read with
      ``SELECT ... FOR UPDATE`` (PostgreSQL) or under the BEGIN IMMEDIATE
      write lock (SQLite), so the read-increment step is serialized.  The
      aggregate-max-plus-one pattern is never used.
    - Transactional: the increment is visible only once the caller's
      transaction commits; a rollback returns the value, so committed
      suffixes stay contiguous.
    - Bounded: more than ``10**width - 1`` references for one prefix and
      day raise SequenceExhaustedError rather than overflowing the suffix.

Failure modes:
    - IntegrityError on concurrent counter creation (handled via savepoint
      rollback and re-read).
    - SequenceExhaustedError when the day's suffix space is used up.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.references import (
    DEFAULT_SEQUENCE_WIDTH,
    ReferencePrefix,
    counter_name,
    day_key,
    format_reference,
    max_sequence,
)
from ledger_kernel.exceptions import SequenceExhaustedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.reference_allocator")


class ReferenceAllocator:
    """
    Allocates human-readable references inside the caller's transaction.

    Contract:
        ``next_reference(prefix)`` returns a string never returned before
        (by a committed transaction) for the same prefix and day.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT retry on a unique-constraint collision of the owning
          record; LedgerCoordinator re-runs the whole creation.

    Usage:
        allocator = ReferenceAllocator(session, clock)
        po_number = allocator.next_reference(ReferencePrefix.PURCHASE_ORDER)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_width: int = DEFAULT_SEQUENCE_WIDTH,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._width = sequence_width

    def next_reference(
        self,
        prefix: ReferencePrefix,
        day: date | None = None,
    ) -> str:
        """
        Allocate the next reference for ``prefix`` on ``day`` (default today).

        Raises:
            SequenceExhaustedError: The day's suffixes are used up.
        """
        day = day or self._clock.today()
        sequence = self.next_value(counter_name(prefix, day))
        limit = max_sequence(self._width)
        if sequence > limit:
            logger.warning(
                "reference_sequence_exhausted",
                extra={"prefix": prefix.value, "day": day_key(day), "limit": limit},
            )
            raise SequenceExhaustedError(prefix.value, day_key(day), limit)
        return format_reference(prefix, day, sequence, self._width)

    def next_value(self, name: str) -> int:
        """
        Lock (or create) the counter row ``name``, increment, return it.

        Postconditions:
            - The returned value is greater than any value previously
              committed for ``name``.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._lock_counter(name)

        if counter is None:
            # First reference of the day; another writer may be creating the
            # same row, so isolate the insert in a savepoint.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug("sequence_allocated", extra={"sequence_name": name, "value": 1})
                return 1
            except IntegrityError:
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                savepoint.rollback()
                counter = self._lock_counter(name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, prefix: ReferencePrefix, day: date) -> int:
        """Last suffix handed out for ``prefix`` on ``day`` (0 if none)."""
        counter = self._session.execute(
            select(SequenceCounter).where(
                SequenceCounter.name == counter_name(prefix, day)
            )
        ).scalar_one_or_none()
        return counter.current_value if counter else 0

    def _lock_counter(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
