"""
OverdueSweeper -- scheduled or on-demand transition of late POs to OVERDUE.

Responsibility:
    Runs one sweep through LedgerCoordinator for a given calendar day and
    reports how many purchase orders it moved.  Only the status column is
    written; monetary fields are never touched.

Architecture position:
    Kernel > Services -- invoked by scripts/sweep_overdue.py or by any
    scheduler the deployment provides.  Holds no timers of its own.

Invariants enforced:
    - Idempotent: a second run with the same ``today`` reports 0.
    - Race-safe with payments: the eligibility guard is part of the UPDATE
      statement, so a PO paid off concurrently is skipped.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from ledger_kernel.domain.dtos import SweepReport
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.ledger_coordinator import LedgerCoordinator

logger = get_logger("services.overdue_sweeper")


class OverdueSweeper:
    def __init__(self, coordinator: LedgerCoordinator):
        self._coordinator = coordinator

    def run(self, today: date | None = None, actor_id: UUID | None = None) -> SweepReport:
        """Sweep as of ``today`` (default: the coordinator clock's date)."""
        today = today or self._coordinator.clock.today()
        affected = self._coordinator.sweep_overdue(today, actor_id)
        logger.info(
            "overdue_sweep_completed",
            extra={"today": today, "affected": affected},
        )
        return SweepReport(today=today, affected=affected)
