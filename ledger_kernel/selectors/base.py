"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors and the
    pagination helper they share.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never
      ORM instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.exceptions import LedgerValidationError

ModelType = TypeVar("ModelType", bound=Base)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere; use with escape=LIKE_ESCAPE."""
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _count(self, stmt: Select) -> int:
        return self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()

    @staticmethod
    def _check_paging(page: int, limit: int) -> None:
        if page < 1:
            raise LedgerValidationError("page", "must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise LedgerValidationError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
