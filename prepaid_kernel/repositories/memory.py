"""
Module: prepaid_kernel.repositories.memory
Responsibility: Thread-safe in-process implementation of ``ReconRepository``.

Architecture position: Kernel > Repositories.  Imports domain/ and
    exceptions only.  Used by tests, demos and single-process deployments.

Invariants enforced:
    - Every public method runs under one re-entrant lock; callers never see
      a half-applied write.
    - ``replace_reconciliation`` and ``transition_adjustment`` are
      compare-and-swap operations (see ``prepaid_kernel.domain.repository``).
    - Line collections are append-only; duplicates are kept as ingested.
    - Insertion order is preserved for every collection.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
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
from prepaid_kernel.domain.values import TripleKey, norm
from prepaid_kernel.exceptions import (
    AdjustmentNotFoundError,
    AdjustmentNotPendingError,
    OptimisticLockError,
    ReconciliationNotFoundError,
)


class InMemoryRepository:
    """Dict/list backed store satisfying every repository protocol."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._schedule: list[ScheduleLine] = []
        self._tb: list[TrialBalanceLine] = []
        self._working: list[WorkingLine] = []
        self._revision = 0
        self._periods: dict[str, FiscalPeriod] = {}
        self._tolerances: list[ToleranceSetting] = []
        self._reconciliations: dict[UUID, ReconciliationRecord] = {}
        self._adjustments: dict[UUID, AdjustmentEntry] = {}
        self._events: list[ApprovalEvent] = []

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def schedule_lines(self) -> Sequence[ScheduleLine]:
        with self._lock:
            return tuple(self._schedule)

    def trial_balance_lines(self) -> Sequence[TrialBalanceLine]:
        with self._lock:
            return tuple(self._tb)

    def working_lines(self) -> Sequence[WorkingLine]:
        with self._lock:
            return tuple(self._working)

    def add_schedule_lines(self, lines: Iterable[ScheduleLine]) -> None:
        self._append(self._schedule, lines)

    def add_trial_balance_lines(self, lines: Iterable[TrialBalanceLine]) -> None:
        self._append(self._tb, lines)

    def add_working_lines(self, lines: Iterable[WorkingLine]) -> None:
        self._append(self._working, lines)

    def _append(self, target: list, lines: Iterable) -> None:
        batch = list(lines)
        if not batch:
            return
        with self._lock:
            target.extend(batch)
            self._revision += 1

    def lines_revision(self) -> int:
        with self._lock:
            return self._revision

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def get_period(self, period_id: str) -> FiscalPeriod | None:
        with self._lock:
            return self._periods.get(norm(period_id))

    def tolerance_settings(self) -> Sequence[ToleranceSetting]:
        with self._lock:
            return tuple(self._tolerances)

    def add_period(self, period: FiscalPeriod) -> None:
        with self._lock:
            self._periods[norm(period.id)] = period

    def add_tolerance_setting(self, setting: ToleranceSetting) -> None:
        with self._lock:
            self._tolerances.append(setting)

    # ------------------------------------------------------------------
    # Reconciliations
    # ------------------------------------------------------------------

    def get_reconciliation(self, reconciliation_id: UUID) -> ReconciliationRecord | None:
        with self._lock:
            return self._reconciliations.get(reconciliation_id)

    def find_reconciliation(
        self, entity_id: str, period_id: str, prepaid_account: str,
    ) -> ReconciliationRecord | None:
        key = TripleKey.of(entity_id, period_id, prepaid_account)
        with self._lock:
            for record in self._reconciliations.values():
                if not record.is_deleted and record.key == key:
                    return record
        return None

    def list_reconciliations(self) -> Sequence[ReconciliationRecord]:
        with self._lock:
            return tuple(r for r in self._reconciliations.values() if not r.is_deleted)

    def insert_reconciliation(self, record: ReconciliationRecord) -> None:
        with self._lock:
            if record.id in self._reconciliations:
                raise ValueError(f"Reconciliation {record.id} already exists")
            if self.find_reconciliation(*record.key) is not None:
                raise OptimisticLockError("Reconciliation", str(record.key), 0)
            self._reconciliations[record.id] = record

    def replace_reconciliation(
        self,
        record: ReconciliationRecord,
        expected_version: int,
        expected_status: ReconciliationStatus,
    ) -> None:
        with self._lock:
            current = self._reconciliations.get(record.id)
            if current is None:
                raise ReconciliationNotFoundError(str(record.id))
            if current.version != expected_version or current.status != expected_status:
                raise OptimisticLockError(
                    "Reconciliation", str(record.id), expected_version,
                )
            self._reconciliations[record.id] = record

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def get_adjustment(self, adjustment_id: UUID) -> AdjustmentEntry | None:
        with self._lock:
            return self._adjustments.get(adjustment_id)

    def list_adjustments(self) -> Sequence[AdjustmentEntry]:
        with self._lock:
            return tuple(a for a in self._adjustments.values() if not a.is_deleted)

    def adjustments_for(self, reconciliation_id: UUID) -> Sequence[AdjustmentEntry]:
        with self._lock:
            return tuple(
                a for a in self._adjustments.values()
                if not a.is_deleted and a.reconciliation_id == reconciliation_id
            )

    def insert_adjustment(self, entry: AdjustmentEntry) -> None:
        with self._lock:
            if entry.id in self._adjustments:
                raise ValueError(f"Adjustment {entry.id} already exists")
            self._adjustments[entry.id] = entry

    def transition_adjustment(
        self, entry: AdjustmentEntry, expected_status: AdjustmentStatus,
    ) -> None:
        with self._lock:
            current = self._adjustments.get(entry.id)
            if current is None:
                raise AdjustmentNotFoundError(str(entry.id))
            if current.status != expected_status:
                raise AdjustmentNotPendingError(str(entry.id), current.status.value)
            self._adjustments[entry.id] = entry

    def append_approval_event(self, event: ApprovalEvent) -> None:
        with self._lock:
            self._events.append(event)

    def approval_events(self, adjustment_id: UUID | None = None) -> Sequence[ApprovalEvent]:
        with self._lock:
            if adjustment_id is None:
                return tuple(self._events)
            return tuple(e for e in self._events if e.adjustment_id == adjustment_id)
