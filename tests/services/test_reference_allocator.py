"""
ReferenceAllocator: per-day locked counters.

Covers suffix contiguity within a day, independence of prefixes and days,
rollback returning values, and exhaustion of the suffix space.
"""

import inspect
from datetime import date

import pytest
from sqlalchemy import select

from ledger_kernel.domain.references import ReferencePrefix
from ledger_kernel.exceptions import SequenceExhaustedError
from ledger_kernel.models.sequence_counter import SequenceCounter
from ledger_kernel.services.reference_allocator import ReferenceAllocator

PO = ReferencePrefix.PURCHASE_ORDER
PAY = ReferencePrefix.PAYMENT


class TestNextReference:
    def test_first_reference_of_the_day(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        assert allocator.next_reference(PO) == "PO-20260115-001"

    def test_suffixes_are_contiguous(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        refs = [allocator.next_reference(PO) for _ in range(5)]
        assert refs == [f"PO-20260115-{n:03d}" for n in range(1, 6)]

    def test_prefixes_count_independently(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        allocator.next_reference(PO)
        allocator.next_reference(PO)
        assert allocator.next_reference(PAY) == "PAY-20260115-001"
        assert allocator.next_reference(PO) == "PO-20260115-003"

    def test_new_day_restarts_at_one(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        allocator.next_reference(PO)
        deterministic_clock.advance_days(1)
        assert allocator.next_reference(PO) == "PO-20260116-001"

    def test_explicit_day(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        assert allocator.next_reference(PO, date(2025, 12, 31)) == "PO-20251231-001"

    def test_one_counter_row_per_prefix_and_day(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        for _ in range(3):
            allocator.next_reference(PO)
        allocator.next_reference(PAY)

        rows = session.execute(
            select(SequenceCounter).order_by(SequenceCounter.name)
        ).scalars().all()
        assert [(r.name, r.current_value) for r in rows] == [
            ("PAY-20260115", 1),
            ("PO-20260115", 3),
        ]

    def test_current_value(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock)
        day = deterministic_clock.today()
        assert allocator.current_value(PO, day) == 0
        allocator.next_reference(PO)
        allocator.next_reference(PO)
        assert allocator.current_value(PO, day) == 2


class TestExhaustion:
    def test_exhausted_after_limit(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock, sequence_width=1)
        refs = [allocator.next_reference(PO) for _ in range(9)]
        assert refs[-1] == "PO-20260115-9"

        with pytest.raises(SequenceExhaustedError) as exc_info:
            allocator.next_reference(PO)
        assert exc_info.value.limit == 9
        assert exc_info.value.day == "20260115"

    def test_exhaustion_is_per_day(self, session, deterministic_clock):
        allocator = ReferenceAllocator(session, deterministic_clock, sequence_width=1)
        for _ in range(9):
            allocator.next_reference(PO)
        deterministic_clock.advance_days(1)
        assert allocator.next_reference(PO) == "PO-20260116-1"


class TestTransactional:
    def test_rollback_returns_the_value(self, session_factory, deterministic_clock):
        with session_factory() as s1:
            ReferenceAllocator(s1, deterministic_clock).next_reference(PO)
            s1.commit()

        with session_factory() as s2:
            assert ReferenceAllocator(s2, deterministic_clock).next_reference(PO) == "PO-20260115-002"
            s2.rollback()

        with session_factory() as s3:
            assert ReferenceAllocator(s3, deterministic_clock).next_reference(PO) == "PO-20260115-002"
            s3.commit()

    def test_uses_locked_counter_not_max_plus_one(self):
        source = inspect.getsource(ReferenceAllocator)
        assert "with_for_update()" in source
        assert "func.max" not in source
