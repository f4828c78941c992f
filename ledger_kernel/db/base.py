"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the ledger's ORM models: UUID primary
    keys, the Python-type to column-type map, constraint naming, and the
    audit columns shared by vendors, purchase orders and payments.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    every model file imports from here.  MUST NOT import from models/,
    services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Surrogate keys only.  ``id`` is a uuid4; po_number and
      payment_reference are separate unique columns.
    - Decimal columns default to Numeric(15, 2).  Floats never reach a
      money column.
    - Constraints get deterministic names, so unique violations can be
      told apart by name (see services/ledger_coordinator.py).
    - created_at is stamped by the database, not by the application clock.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character text form; portable to SQLite."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger tables.

    Column types follow the annotation: Decimal -> Numeric(15, 2),
    datetime -> timezone-aware DateTime, UUID -> UUIDString,
    int -> BigInteger.  Percentages and other precisions are declared with
    the aliases in db/types.py.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(15, 2),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class TrackedBase(Base):
    """
    Base for rows created and changed by an actor.

    created_by_id is required; updated_by_id is set by every later
    mutation (status change, payment application, void, soft delete).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString())


# Re-export UUID for convenience
UUID = PyUUID
