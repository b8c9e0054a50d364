"""
Reconciliation record (``prepaid_kernel.domain.reconciliation``).

Responsibility
--------------
The computed unit of work: one record per (entity, period, prepaid account)
holding the expected-vs-actual figures, the tolerance used and the workflow
status.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  Records are never mutated in
place; every recompute or status change produces a new frozen value that the
repository swaps in with a compare-and-swap on ``version``.

Invariants enforced
-------------------
* ``final_difference == difference - recon_entries`` (None-propagating).
* ``difference is None`` iff ``gl_balance is None``.
* After a recompute, ``status`` is CLOSED iff ``final_difference`` is not
  None and ``abs(final_difference) <= tolerance_used``; otherwise OPEN.
  PENDING_CHECKER and REOPENED are set only by the adjustment workflow.
* ``version`` starts at 1 and increases by exactly 1 per recompute.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from prepaid_kernel.domain.values import ZERO, TripleKey, decimal_str


class ReconciliationStatus(str, Enum):
    """Workflow status of a reconciliation record."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"                     # Within tolerance; locked for new adjustments
    PENDING_CHECKER = "PENDING_CHECKER"   # Adjustment proposed, awaiting checker
    REOPENED = "REOPENED"                 # Last adjustment was rejected


@dataclass(frozen=True, slots=True)
class ReconciliationRecord:
    """Expected-vs-actual prepaid balance for one (entity, period, account)."""

    id: UUID
    entity_id: str
    fiscal_year: str | None
    period_id: str
    prepaid_account: str

    opening_balance: Decimal
    additions: Decimal
    amortization: Decimal
    expected_closing: Decimal

    begin_in_year: tuple[tuple[int, Decimal], ...]
    total_subsystem: Decimal
    gl_balance: Decimal | None
    difference: Decimal | None
    recon_entries: Decimal
    final_difference: Decimal | None
    tolerance_used: Decimal
    status: ReconciliationStatus

    expected_closing_adjusted: Decimal
    variance: Decimal | None

    version: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def key(self) -> TripleKey:
        return TripleKey.of(self.entity_id, self.period_id, self.prepaid_account)

    @property
    def actual_closing(self) -> Decimal | None:
        """GL closing balance from the trial balance (alias of ``gl_balance``)."""
        return self.gl_balance

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_locked(self) -> bool:
        """CLOSED reconciliations reject new adjustments."""
        return self.status == ReconciliationStatus.CLOSED

    def begin_in(self, year: int) -> Decimal:
        """Begin-in-year balance for ``year`` (0 outside the dashboard years)."""
        for y, balance in self.begin_in_year:
            if y == year:
                return balance
        return ZERO

    def with_status(
        self, status: ReconciliationStatus, at: datetime,
    ) -> ReconciliationRecord:
        """Workflow status change; figures and version are untouched."""
        return replace(self, status=status, updated_at=at)

    def soft_deleted(self, at: datetime) -> ReconciliationRecord:
        return replace(self, deleted_at=at, updated_at=at)

    def to_dict(self) -> dict[str, Any]:
        """camelCase JSON shape consumed by the HTTP layer and UI."""
        data: dict[str, Any] = {
            "id": str(self.id),
            "entityId": self.entity_id,
            "fiscalYear": self.fiscal_year,
            "periodId": self.period_id,
            "prepaidAccount": self.prepaid_account,
        }
        for year, balance in self.begin_in_year:
            data[f"beginIn{year}Prepaid"] = decimal_str(balance)
        data.update({
            "totalSubsystem": decimal_str(self.total_subsystem),
            "glBalance": decimal_str(self.gl_balance),
            "difference": decimal_str(self.difference),
            "reconEntries": decimal_str(self.recon_entries),
            "finalDifference": decimal_str(self.final_difference),
            "status": self.status.value,
            "toleranceUsed": decimal_str(self.tolerance_used),
            "openingBalance": decimal_str(self.opening_balance),
            "additions": decimal_str(self.additions),
            "amortization": decimal_str(self.amortization),
            "expectedClosing": decimal_str(self.expected_closing),
            "expectedClosingAdjusted": decimal_str(self.expected_closing_adjusted),
            "actualClosing": decimal_str(self.actual_closing),
            "variance": decimal_str(self.variance),
            "version": self.version,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "deletedAt": self.deleted_at.isoformat() if self.deleted_at else None,
        })
        return data
