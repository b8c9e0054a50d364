"""
Module: prepaid_kernel.repositories.sql
Responsibility: SQLAlchemy 2.0 implementation of ``ReconRepository``.

Architecture position: Kernel > Repositories.  Imports db/, models/,
    domain/ and exceptions.  The repository flushes but never commits:
    transaction boundaries belong to the caller (``session_scope()``).

Invariants enforced:
    - Compare-and-swap writes are single UPDATE statements whose WHERE
      clause carries the expected version/status; a rowcount of 0 means the
      row moved underneath us and nothing was written.
    - Reads use ``populate_existing`` so rows changed by a CAS UPDATE are
      never served stale from the identity map.
    - A second live record for the same triple is rejected by the partial
      unique index; the INSERT runs inside a SAVEPOINT so the caller's
      transaction survives the IntegrityError.

Failure modes:
    - OptimisticLockError on a lost CAS or a duplicate live triple.
    - AdjustmentNotPendingError when an adjustment was already decided.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

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
from prepaid_kernel.domain.values import norm
from prepaid_kernel.exceptions import (
    AdjustmentNotFoundError,
    AdjustmentNotPendingError,
    OptimisticLockError,
    ReconciliationNotFoundError,
)
from prepaid_kernel.logging_config import get_logger
from prepaid_kernel.models.adjustment import AdjustmentEntryModel, ApprovalEventModel
from prepaid_kernel.models.lines import (
    ScheduleLineModel,
    TrialBalanceLineModel,
    WorkingLineModel,
)
from prepaid_kernel.models.reconciliation import ReconciliationModel
from prepaid_kernel.models.reference import FiscalPeriodModel, ToleranceSettingModel

logger = get_logger("repositories.sql")


class SqlAlchemyRepository:
    """Repository over one SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    def _scalars(self, stmt):
        return self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars()

    def _next_seq(self, column) -> int:
        current = self._session.execute(select(func.max(column))).scalar()
        return (current or 0) + 1

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def schedule_lines(self) -> Sequence[ScheduleLine]:
        rows = self._scalars(select(ScheduleLineModel).order_by(ScheduleLineModel.ingest_seq))
        return tuple(r.to_dto() for r in rows)

    def trial_balance_lines(self) -> Sequence[TrialBalanceLine]:
        rows = self._scalars(
            select(TrialBalanceLineModel).order_by(TrialBalanceLineModel.ingest_seq)
        )
        return tuple(r.to_dto() for r in rows)

    def working_lines(self) -> Sequence[WorkingLine]:
        rows = self._scalars(select(WorkingLineModel).order_by(WorkingLineModel.ingest_seq))
        return tuple(r.to_dto() for r in rows)

    def _add_lines(self, model, lines: Iterable) -> None:
        seq = self._next_seq(model.ingest_seq)
        count = 0
        for offset, line in enumerate(lines):
            self._session.add(model.from_dto(line, seq + offset))
            count += 1
        if count:
            self._session.flush()
            logger.debug(
                "lines_added",
                extra={"table": model.__tablename__, "count": count},
            )

    def add_schedule_lines(self, lines: Iterable[ScheduleLine]) -> None:
        self._add_lines(ScheduleLineModel, lines)

    def add_trial_balance_lines(self, lines: Iterable[TrialBalanceLine]) -> None:
        self._add_lines(TrialBalanceLineModel, lines)

    def add_working_lines(self, lines: Iterable[WorkingLine]) -> None:
        self._add_lines(WorkingLineModel, lines)

    def lines_revision(self) -> int:
        """Total stored line count; lines are append-only so it only grows."""
        total = 0
        for model in (ScheduleLineModel, TrialBalanceLineModel, WorkingLineModel):
            total += self._session.execute(
                select(func.count()).select_from(model)
            ).scalar_one()
        return total

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def get_period(self, period_id: str) -> FiscalPeriod | None:
        row = self._scalars(
            select(FiscalPeriodModel).where(FiscalPeriodModel.period_id == norm(period_id))
        ).one_or_none()
        return row.to_dto() if row else None

    def tolerance_settings(self) -> Sequence[ToleranceSetting]:
        rows = self._scalars(select(ToleranceSettingModel))
        return tuple(r.to_dto() for r in rows)

    def add_period(self, period: FiscalPeriod) -> None:
        self._session.add(FiscalPeriodModel.from_dto(period))
        self._session.flush()

    def add_tolerance_setting(self, setting: ToleranceSetting) -> None:
        self._session.add(ToleranceSettingModel.from_dto(setting))
        self._session.flush()

    # ------------------------------------------------------------------
    # Reconciliations
    # ------------------------------------------------------------------

    def get_reconciliation(self, reconciliation_id: UUID) -> ReconciliationRecord | None:
        row = self._scalars(
            select(ReconciliationModel).where(ReconciliationModel.id == reconciliation_id)
        ).one_or_none()
        return row.to_dto() if row else None

    def find_reconciliation(
        self, entity_id: str, period_id: str, prepaid_account: str,
    ) -> ReconciliationRecord | None:
        row = self._scalars(
            select(ReconciliationModel).where(
                ReconciliationModel.entity_id == norm(entity_id),
                ReconciliationModel.period_id == norm(period_id),
                ReconciliationModel.prepaid_account == norm(prepaid_account),
                ReconciliationModel.deleted_at.is_(None),
            )
        ).first()
        return row.to_dto() if row else None

    def list_reconciliations(self) -> Sequence[ReconciliationRecord]:
        rows = self._scalars(
            select(ReconciliationModel)
            .where(ReconciliationModel.deleted_at.is_(None))
            .order_by(ReconciliationModel.created_at, ReconciliationModel.id)
        )
        return tuple(r.to_dto() for r in rows)

    def insert_reconciliation(self, record: ReconciliationRecord) -> None:
        savepoint = self._session.begin_nested()
        try:
            self._session.add(ReconciliationModel.from_dto(record))
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "reconciliation_insert_race",
                extra={"reconciliation_id": str(record.id)},
            )
            raise OptimisticLockError("Reconciliation", str(record.key), 0)

    def replace_reconciliation(
        self,
        record: ReconciliationRecord,
        expected_version: int,
        expected_status: ReconciliationStatus,
    ) -> None:
        result = self._session.execute(
            update(ReconciliationModel)
            .where(
                ReconciliationModel.id == record.id,
                ReconciliationModel.version == expected_version,
                ReconciliationModel.status == expected_status.value,
            )
            .values(**ReconciliationModel.values_from_dto(record))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        if self.get_reconciliation(record.id) is None:
            raise ReconciliationNotFoundError(str(record.id))
        raise OptimisticLockError("Reconciliation", str(record.id), expected_version)

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def get_adjustment(self, adjustment_id: UUID) -> AdjustmentEntry | None:
        row = self._scalars(
            select(AdjustmentEntryModel).where(AdjustmentEntryModel.id == adjustment_id)
        ).one_or_none()
        return row.to_dto() if row else None

    def list_adjustments(self) -> Sequence[AdjustmentEntry]:
        rows = self._scalars(
            select(AdjustmentEntryModel)
            .where(AdjustmentEntryModel.deleted_at.is_(None))
            .order_by(AdjustmentEntryModel.created_at, AdjustmentEntryModel.id)
        )
        return tuple(r.to_dto() for r in rows)

    def adjustments_for(self, reconciliation_id: UUID) -> Sequence[AdjustmentEntry]:
        rows = self._scalars(
            select(AdjustmentEntryModel)
            .where(
                AdjustmentEntryModel.reconciliation_id == reconciliation_id,
                AdjustmentEntryModel.deleted_at.is_(None),
            )
            .order_by(AdjustmentEntryModel.created_at, AdjustmentEntryModel.id)
        )
        return tuple(r.to_dto() for r in rows)

    def insert_adjustment(self, entry: AdjustmentEntry) -> None:
        self._session.add(AdjustmentEntryModel.from_dto(entry))
        self._session.flush()

    def transition_adjustment(
        self, entry: AdjustmentEntry, expected_status: AdjustmentStatus,
    ) -> None:
        result = self._session.execute(
            update(AdjustmentEntryModel)
            .where(
                AdjustmentEntryModel.id == entry.id,
                AdjustmentEntryModel.status == expected_status.value,
            )
            .values(**AdjustmentEntryModel.values_from_dto(entry))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        current = self.get_adjustment(entry.id)
        if current is None:
            raise AdjustmentNotFoundError(str(entry.id))
        raise AdjustmentNotPendingError(str(entry.id), current.status.value)

    def append_approval_event(self, event: ApprovalEvent) -> None:
        seq = self._next_seq(ApprovalEventModel.seq)
        self._session.add(ApprovalEventModel.from_dto(event, seq))
        self._session.flush()

    def approval_events(self, adjustment_id: UUID | None = None) -> Sequence[ApprovalEvent]:
        stmt = select(ApprovalEventModel).order_by(ApprovalEventModel.seq)
        if adjustment_id is not None:
            stmt = stmt.where(ApprovalEventModel.adjustment_id == adjustment_id)
        return tuple(r.to_dto() for r in self._scalars(stmt))
