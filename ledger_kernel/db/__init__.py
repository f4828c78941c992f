"""Database layer - engine, base classes, and column types."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import build_engine, create_tables, drop_tables
from ledger_kernel.db.types import Money, Percent, round_money

__all__ = [
    "build_engine",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Percent",
    "round_money",
]
