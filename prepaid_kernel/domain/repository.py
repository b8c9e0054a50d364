"""
Repository contracts (``prepaid_kernel.domain.repository``).

Responsibility
--------------
The get/find/insert/replace interfaces the Formula Engine, the Adjustment
Workflow and the Evidence Builder depend on.  Services never touch a
concrete store; ``InMemoryRepository`` and ``SqlAlchemyRepository`` both
satisfy these protocols.

Invariants enforced
-------------------
* Lines are append-only.  ``lines_revision()`` changes whenever lines are
  added, so derived indexes can be cached per revision.
* ``replace_reconciliation`` is a compare-and-swap: the stored record must
  still carry ``expected_version`` and ``expected_status`` or
  ``OptimisticLockError`` is raised and nothing is written.
* ``transition_adjustment`` is a compare-and-swap on status: the stored
  entry must still be in ``expected_status`` or
  ``AdjustmentNotPendingError`` is raised and nothing is written.
* Approval events are append-only.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol
from uuid import UUID

from prepaid_kernel.domain.adjustment import (
    AdjustmentEntry,
    AdjustmentStatus,
    ApprovalEvent,
)
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import (
    ReconciliationRecord,
    ReconciliationStatus,
)
from prepaid_kernel.domain.reference import FiscalPeriod, ToleranceSetting


class LineStore(Protocol):
    """The three normalized source line collections."""

    def schedule_lines(self) -> Sequence[ScheduleLine]: ...

    def trial_balance_lines(self) -> Sequence[TrialBalanceLine]: ...

    def working_lines(self) -> Sequence[WorkingLine]: ...

    def add_schedule_lines(self, lines: Iterable[ScheduleLine]) -> None: ...

    def add_trial_balance_lines(self, lines: Iterable[TrialBalanceLine]) -> None: ...

    def add_working_lines(self, lines: Iterable[WorkingLine]) -> None: ...

    def lines_revision(self) -> int: ...


class ReferenceStore(Protocol):
    """Read access to externally mastered periods and tolerance rules."""

    def get_period(self, period_id: str) -> FiscalPeriod | None: ...

    def tolerance_settings(self) -> Sequence[ToleranceSetting]: ...

    def add_period(self, period: FiscalPeriod) -> None: ...

    def add_tolerance_setting(self, setting: ToleranceSetting) -> None: ...


class ReconciliationStore(Protocol):
    """Reconciliation records, soft-deleted rows included."""

    def get_reconciliation(self, reconciliation_id: UUID) -> ReconciliationRecord | None: ...

    def find_reconciliation(
        self, entity_id: str, period_id: str, prepaid_account: str,
    ) -> ReconciliationRecord | None:
        """The live (not soft-deleted) record for the exact triple."""
        ...

    def list_reconciliations(self) -> Sequence[ReconciliationRecord]:
        """All live records."""
        ...

    def insert_reconciliation(self, record: ReconciliationRecord) -> None: ...

    def replace_reconciliation(
        self,
        record: ReconciliationRecord,
        expected_version: int,
        expected_status: ReconciliationStatus,
    ) -> None: ...


class AdjustmentStore(Protocol):
    """Adjustment entries and their approval trail."""

    def get_adjustment(self, adjustment_id: UUID) -> AdjustmentEntry | None: ...

    def list_adjustments(self) -> Sequence[AdjustmentEntry]:
        """All live entries."""
        ...

    def adjustments_for(self, reconciliation_id: UUID) -> Sequence[AdjustmentEntry]:
        """Live entries referencing one reconciliation."""
        ...

    def insert_adjustment(self, entry: AdjustmentEntry) -> None: ...

    def transition_adjustment(
        self, entry: AdjustmentEntry, expected_status: AdjustmentStatus,
    ) -> None: ...

    def append_approval_event(self, event: ApprovalEvent) -> None: ...

    def approval_events(self, adjustment_id: UUID | None = None) -> Sequence[ApprovalEvent]: ...


class ReconRepository(
    LineStore, ReferenceStore, ReconciliationStore, AdjustmentStore, Protocol,
):
    """Everything the reconciliation core reads and writes."""
