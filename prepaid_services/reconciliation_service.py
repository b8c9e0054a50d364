"""
prepaid_services.reconciliation_service -- Formula Engine orchestration.

Responsibility:
    Runs the reconciliation formulas for one triple (``compute_one``), for
    every account of an (entity, period) (``compute_all``) and for one
    stored record (``recompute``), and persists the results.  Also serves
    the read side: ``get``, ``get_with_evidence``, ``list_reconciliations``
    and ``soft_delete``.

Architecture position:
    Services -- stateful orchestration.  Reads and writes only through the
    ``ReconRepository`` contract; all math is delegated to
    ``prepaid_engines.formulas``.

Invariants enforced:
    - One live record per (entity, period, prepaid account).
    - A recompute keeps ``id`` and ``created_at``, bumps ``version`` by
      exactly 1 and refreshes ``updated_at``.
    - Writes to one triple are serialized in-process by ``KeyedLock`` and
      across processes by the repository compare-and-swap.  A lost CAS is
      retried from a fresh read up to ``max_recompute_attempts`` times.
    - ``compute_all`` is not atomic as a batch: records already written
      stay written if a later account fails.

Failure modes:
    - OptimisticLockError after ``max_recompute_attempts`` lost races.
    - ReconciliationNotFoundError from ``soft_delete`` on a missing or
      already deleted record.

Audit relevance:
    Every write emits a structured log line and an ``AuditRecord``.  A
    disagreement between Total Subsystem and the PPREC expected closing is
    logged as ``subsystem_expected_closing_divergence``; it is flagged,
    never reconciled away.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from prepaid_config import ReconConfig, get_active_config
from prepaid_engines.formulas import ReconciliationFigures, compute_figures
from prepaid_engines.line_index import LineSnapshot
from prepaid_kernel.domain.clock import Clock, SystemClock
from prepaid_kernel.domain.reconciliation import (
    ReconciliationRecord,
    ReconciliationStatus,
)
from prepaid_kernel.domain.repository import ReconRepository
from prepaid_kernel.domain.values import TripleKey, norm
from prepaid_kernel.exceptions import OptimisticLockError, ReconciliationNotFoundError
from prepaid_kernel.logging_config import LogContext, get_logger
from prepaid_kernel.utils.locks import KeyedLock
from prepaid_services.audit import (
    SYSTEM_ACTOR,
    AuditAction,
    AuditRecord,
    AuditSink,
    LoggingAuditSink,
)
from prepaid_services.evidence_service import EvidenceService

if TYPE_CHECKING:
    from prepaid_kernel.domain.evidence import Evidence

logger = get_logger("services.reconciliation")


def _current_actor() -> str:
    return LogContext.get_all().get("actor_id", SYSTEM_ACTOR)


class ReconciliationService:
    """Computes, stores and queries reconciliation records."""

    def __init__(
        self,
        repository: ReconRepository,
        config: ReconConfig | None = None,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._repo = repository
        self._config = config if config is not None else get_active_config()
        self._clock = clock or SystemClock()
        self._audit = audit_sink or LoggingAuditSink()
        self._locks = locks or KeyedLock()
        self._snapshot: LineSnapshot | None = None
        self._snapshot_guard = threading.Lock()
        self._evidence = EvidenceService(repository, self)

    @property
    def config(self) -> ReconConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    @property
    def audit_sink(self) -> AuditSink:
        return self._audit

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def line_snapshot(self) -> LineSnapshot:
        """Indexed lines, rebuilt only when the store's revision moves."""
        revision = self._repo.lines_revision()
        with self._snapshot_guard:
            if self._snapshot is not None and self._snapshot.revision == revision:
                return self._snapshot
        snapshot = LineSnapshot.build(
            revision,
            self._repo.schedule_lines(),
            self._repo.trial_balance_lines(),
            self._repo.working_lines(),
        )
        with self._snapshot_guard:
            self._snapshot = snapshot
        logger.debug(
            "line_snapshot_built",
            extra={
                "revision": revision,
                "schedule_count": len(snapshot.schedule),
                "tb_count": len(snapshot.trial_balance),
                "pprec_count": len(snapshot.working),
            },
        )
        return snapshot

    def figures_for(
        self,
        entity_id: Any,
        fiscal_year: Any,
        period_id: Any,
        prepaid_account: Any,
        reconciliation_id: UUID,
    ) -> ReconciliationFigures:
        """Run the formulas against the current store without writing."""
        period = self._repo.get_period(norm(period_id)) if norm(period_id) else None
        return compute_figures(
            entity_id=norm(entity_id),
            fiscal_year=fiscal_year,
            period_id=norm(period_id),
            prepaid_account=norm(prepaid_account),
            reconciliation_id=reconciliation_id,
            lines=self.line_snapshot(),
            period=period,
            tolerance_settings=self._repo.tolerance_settings(),
            adjustments=self._repo.adjustments_for(reconciliation_id),
            dashboard_years=self._config.dashboard_years,
            default_tolerance=self._config.default_tolerance,
        )

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def compute_one(
        self,
        entity_id: Any,
        fiscal_year: Any,
        period_id: Any,
        prepaid_account: Any,
        existing: ReconciliationRecord | None = None,
    ) -> ReconciliationRecord:
        """Compute and persist the record for one (entity, period, account).

        Inserts version 1 when there is no live record for the triple,
        otherwise replaces it in place (same id, version + 1).
        """
        key = TripleKey.of(entity_id, period_id, prepaid_account)
        year = norm(fiscal_year) or None
        attempts = self._config.max_recompute_attempts

        with LogContext.bind(entity_id=key.entity_id, period_id=key.period_id), \
                self._locks.hold(key):
            for attempt in range(1, attempts + 1):
                current = existing if attempt == 1 else None
                if current is None or current.is_deleted:
                    current = self._repo.find_reconciliation(*key)
                record_id = current.id if current is not None else uuid4()

                figures = self.figures_for(
                    key.entity_id, year, key.period_id, key.prepaid_account, record_id,
                )
                record = self._build_record(record_id, key, year, figures, current)
                try:
                    if current is None:
                        self._repo.insert_reconciliation(record)
                    else:
                        self._repo.replace_reconciliation(
                            record,
                            expected_version=current.version,
                            expected_status=current.status,
                        )
                except OptimisticLockError:
                    logger.warning(
                        "reconciliation_cas_retry",
                        extra={
                            "reconciliation_id": str(record_id),
                            "attempt": attempt,
                            "max_attempts": attempts,
                        },
                    )
                    if attempt == attempts:
                        raise
                    continue

                self._after_write(record, figures, created=current is None)
                return record

        raise AssertionError("unreachable")  # pragma: no cover

    def _build_record(
        self,
        record_id: UUID,
        key: TripleKey,
        fiscal_year: str | None,
        figures: ReconciliationFigures,
        current: ReconciliationRecord | None,
    ) -> ReconciliationRecord:
        now = self._clock.now()
        return ReconciliationRecord(
            id=record_id,
            entity_id=key.entity_id,
            fiscal_year=fiscal_year,
            period_id=key.period_id,
            prepaid_account=key.prepaid_account,
            opening_balance=figures.opening_balance,
            additions=figures.additions,
            amortization=figures.amortization,
            expected_closing=figures.expected_closing,
            begin_in_year=figures.begin_in_year,
            total_subsystem=figures.total_subsystem,
            gl_balance=figures.gl_balance,
            difference=figures.difference,
            recon_entries=figures.recon_entries,
            final_difference=figures.final_difference,
            tolerance_used=figures.tolerance_used,
            status=figures.status,
            expected_closing_adjusted=figures.expected_closing_adjusted,
            variance=figures.variance,
            version=current.version + 1 if current is not None else 1,
            created_at=current.created_at if current is not None else now,
            updated_at=now,
        )

    def _after_write(
        self,
        record: ReconciliationRecord,
        figures: ReconciliationFigures,
        created: bool,
    ) -> None:
        logger.info(
            "reconciliation_computed",
            extra={
                "reconciliation_id": str(record.id),
                "prepaid_account": record.prepaid_account,
                "version": record.version,
                "recon_status": record.status.value,
                "total_subsystem": str(record.total_subsystem),
                "gl_balance": None if record.gl_balance is None else str(record.gl_balance),
                "final_difference": (
                    None if record.final_difference is None else str(record.final_difference)
                ),
                "tolerance_used": str(record.tolerance_used),
                "is_new": created,
            },
        )
        if figures.subsystem_diverges:
            logger.warning(
                "subsystem_expected_closing_divergence",
                extra={
                    "reconciliation_id": str(record.id),
                    "total_subsystem": str(figures.total_subsystem),
                    "expected_closing": str(figures.expected_closing),
                },
            )
        self._audit.record(AuditRecord(
            action=(
                AuditAction.RECONCILIATION_CREATED if created
                else AuditAction.RECONCILIATION_RECOMPUTED
            ),
            actor_id=_current_actor(),
            resource_type="Reconciliation",
            resource_id=str(record.id),
            occurred_at=record.updated_at,
            metadata={
                "version": record.version,
                "status": record.status.value,
                "finalDifference": (
                    None if record.final_difference is None else str(record.final_difference)
                ),
            },
        ))

    def compute_all(
        self, entity_id: Any, fiscal_year: Any, period_id: Any,
    ) -> list[ReconciliationRecord]:
        """Compute every prepaid account seen in PPREC, schedule or TB lines.

        Each account reuses the live record for its exact triple.  An error
        on one account propagates after earlier records were persisted.
        """
        accounts = self.line_snapshot().accounts_for(entity_id, period_id, fiscal_year)
        results = []
        for account in accounts:
            existing = self._repo.find_reconciliation(entity_id, period_id, account)
            results.append(
                self.compute_one(entity_id, fiscal_year, period_id, account, existing=existing)
            )
        logger.info(
            "reconciliation_batch_completed",
            extra={
                "entity_id": norm(entity_id),
                "period_id": norm(period_id),
                "fiscal_year": norm(fiscal_year) or None,
                "account_count": len(results),
            },
        )
        return results

    def recompute(self, reconciliation_id: UUID) -> ReconciliationRecord | None:
        """Re-run the formulas for a stored record; None if missing or deleted."""
        record = self._repo.get_reconciliation(reconciliation_id)
        if record is None or record.is_deleted:
            logger.info(
                "reconciliation_recompute_skipped",
                extra={"reconciliation_id": str(reconciliation_id)},
            )
            return None
        return self.compute_one(
            record.entity_id,
            record.fiscal_year,
            record.period_id,
            record.prepaid_account,
            existing=record,
        )

    # ------------------------------------------------------------------
    # Workflow status
    # ------------------------------------------------------------------

    def set_status(
        self, reconciliation_id: UUID, status: ReconciliationStatus,
    ) -> ReconciliationRecord:
        """Move a live record to ``status`` without touching figures or version.

        Raises:
            ReconciliationNotFoundError: missing or soft-deleted record.
            OptimisticLockError: after ``max_recompute_attempts`` lost races.
        """
        attempts = self._config.max_recompute_attempts
        for attempt in range(1, attempts + 1):
            current = self._live(reconciliation_id)
            with self._locks.hold(current.key):
                current = self._live(reconciliation_id)
                updated = current.with_status(status, self._clock.now())
                try:
                    self._repo.replace_reconciliation(
                        updated,
                        expected_version=current.version,
                        expected_status=current.status,
                    )
                except OptimisticLockError:
                    if attempt == attempts:
                        raise
                    continue
            logger.info(
                "reconciliation_status_changed",
                extra={
                    "reconciliation_id": str(reconciliation_id),
                    "from_status": current.status.value,
                    "to_status": status.value,
                },
            )
            return updated
        raise AssertionError("unreachable")  # pragma: no cover

    def _live(self, reconciliation_id: UUID) -> ReconciliationRecord:
        record = self._repo.get_reconciliation(reconciliation_id)
        if record is None or record.is_deleted:
            raise ReconciliationNotFoundError(str(reconciliation_id))
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, reconciliation_id: UUID) -> ReconciliationRecord | None:
        record = self._repo.get_reconciliation(reconciliation_id)
        if record is None or record.is_deleted:
            return None
        return record

    def get_with_evidence(
        self, reconciliation_id: UUID,
    ) -> tuple[ReconciliationRecord, Evidence] | None:
        record = self.get(reconciliation_id)
        if record is None:
            return None
        evidence = self._evidence.build_evidence(reconciliation_id)
        if evidence is None:
            return None
        return evidence.record, evidence

    def list_reconciliations(
        self,
        entity_id: Any = None,
        period_id: Any = None,
        fiscal_year: Any = None,
        status: ReconciliationStatus | str | None = None,
        prepaid_account: Any = None,
        entity_scope: Iterable[str] | None = None,
    ) -> list[ReconciliationRecord]:
        """Live records matching every given filter.

        ``entity_scope`` is an allow-list of entity ids supplied by the
        caller's access-control layer; None means unrestricted.
        """
        wanted_status = ReconciliationStatus(status) if status is not None else None
        scope = {norm(e) for e in entity_scope} if entity_scope is not None else None
        results = []
        for record in self._repo.list_reconciliations():
            if norm(entity_id) and record.entity_id != norm(entity_id):
                continue
            if norm(period_id) and record.period_id != norm(period_id):
                continue
            if norm(fiscal_year) and norm(record.fiscal_year) != norm(fiscal_year):
                continue
            if wanted_status is not None and record.status != wanted_status:
                continue
            if norm(prepaid_account) and record.prepaid_account != norm(prepaid_account):
                continue
            if scope is not None and record.entity_id not in scope:
                continue
            results.append(record)
        return results

    def soft_delete(self, reconciliation_id: UUID, actor_id: str) -> ReconciliationRecord:
        """Mark a record deleted; it stays stored but drops out of every query."""
        current = self._live(reconciliation_id)
        with self._locks.hold(current.key):
            current = self._live(reconciliation_id)
            now: datetime = self._clock.now()
            deleted = current.soft_deleted(now)
            self._repo.replace_reconciliation(
                deleted,
                expected_version=current.version,
                expected_status=current.status,
            )
        logger.info(
            "reconciliation_soft_deleted",
            extra={"reconciliation_id": str(reconciliation_id), "deleted_by": actor_id},
        )
        self._audit.record(AuditRecord(
            action=AuditAction.RECONCILIATION_DELETED,
            actor_id=actor_id,
            resource_type="Reconciliation",
            resource_id=str(reconciliation_id),
            occurred_at=now,
        ))
        return deleted
