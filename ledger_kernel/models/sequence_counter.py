"""
Module: ledger_kernel.models.sequence_counter
Responsibility: One row per ``<PREFIX>-<YYYYMMDD>`` holding the last
    reference suffix handed out for that prefix and day.
Architecture position: Kernel > Models.  Written only by ReferenceAllocator.

Invariants enforced:
    - name is unique; the row is the sole source of truth for the next
      suffix and is always read with a row lock before incrementing.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Per-prefix, per-day counter.

    Row-level locking ensures two writers never receive the same value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "PO-20260115", "PAY-20260115"
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
