"""
prepaid_services.adjustment_service -- Maker/checker Adjustment Workflow.

Responsibility:
    Accept correcting-entry proposals against a reconciliation, and let a
    second user approve or reject them.  Approval folds the entry into the
    record through a recompute; rejection only moves the record to
    REOPENED.

Architecture position:
    Services -- orchestrates the repository, ``ReconciliationService`` and
    the pure rules in ``prepaid_engines.adjustment``.

Invariants enforced:
    - Segregation of duties: the maker of an entry can never decide it.
    - ``PENDING_APPROVAL -> {APPROVED, REJECTED}`` only; decided entries are
      never edited.  The decision is a compare-and-swap on status, so two
      concurrent checkers cannot both win.
    - CLOSED reconciliations accept no new proposals.
    - Every proposal and decision appends one ``ApprovalEvent``.

Failure modes:
    - ReconciliationNotFoundError / AdjustmentNotFoundError: unknown or
      soft-deleted target.
    - ReconciliationLockedError: proposal against a CLOSED record.
    - InvalidAdjustmentAmountError, MissingExplanationError,
      MissingRejectionCommentError: bad input.
    - SelfApprovalError: checker is the maker.
    - AdjustmentNotPendingError: entry already decided.

Audit relevance:
    Proposals, approvals and rejections are each reported to the
    ``AuditSink`` with the acting user.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from prepaid_engines.adjustment import compute_impact_on_prepaid, resolve_amount
from prepaid_kernel.domain.adjustment import (
    AdjustmentEntry,
    AdjustmentProposal,
    AdjustmentStatus,
    ApprovalAction,
    ApprovalEvent,
)
from prepaid_kernel.domain.clock import Clock
from prepaid_kernel.domain.reconciliation import ReconciliationRecord, ReconciliationStatus
from prepaid_kernel.domain.repository import ReconRepository
from prepaid_kernel.domain.values import ZERO, norm, same_id
from prepaid_kernel.exceptions import (
    AdjustmentNotFoundError,
    AdjustmentNotPendingError,
    InvalidAdjustmentAmountError,
    MissingExplanationError,
    MissingRejectionCommentError,
    ReconciliationLockedError,
    ReconciliationNotFoundError,
    SelfApprovalError,
)
from prepaid_kernel.logging_config import LogContext, get_logger
from prepaid_services.audit import AuditAction, AuditRecord, AuditSink
from prepaid_services.reconciliation_service import ReconciliationService

logger = get_logger("services.adjustment")


class AdjustmentWorkflow:
    """Propose / approve / reject correcting entries."""

    def __init__(
        self,
        repository: ReconRepository,
        reconciliation_service: ReconciliationService,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        self._repo = repository
        self._recon = reconciliation_service
        self._clock = clock or reconciliation_service.clock
        self._audit = audit_sink or reconciliation_service.audit_sink
        self._locks = reconciliation_service.locks

    # ------------------------------------------------------------------
    # Maker
    # ------------------------------------------------------------------

    def propose(self, request: AdjustmentProposal, maker_id: str) -> AdjustmentEntry:
        """Create a PENDING_APPROVAL entry and park the record in PENDING_CHECKER."""
        record = self._live_record(request.reconciliation_id)

        with LogContext.bind(actor_id=maker_id, reconciliation_id=record.id), \
                self._locks.hold(record.key):
            record = self._live_record(request.reconciliation_id)
            if record.is_locked:
                raise ReconciliationLockedError(str(record.id))
            amount, raw = resolve_amount(request)
            if amount is None or amount <= ZERO:
                raise InvalidAdjustmentAmountError(raw)
            if not norm(request.explanation):
                raise MissingExplanationError(str(record.id))

            now = self._clock.now()
            explanation = norm(request.explanation)
            entry = AdjustmentEntry(
                reconciliation_id=record.id,
                entity_id=norm(request.entity_id) or record.entity_id,
                period_id=norm(request.period_id) or record.period_id,
                debit_account=norm(request.debit_account) or None,
                credit_account=norm(request.credit_account) or None,
                amount=amount,
                impact_on_prepaid=compute_impact_on_prepaid(
                    request.debit_account,
                    request.credit_account,
                    amount,
                    record.prepaid_account,
                ),
                explanation=explanation,
                maker_id=maker_id,
                maker_comment=explanation,
                created_at=now,
                updated_at=now,
            )
            # Entry first: a record is never PENDING_CHECKER without an entry to decide
            self._repo.insert_adjustment(entry)
            self._repo.append_approval_event(ApprovalEvent(
                adjustment_id=entry.id,
                action=ApprovalAction.PROPOSED,
                user_id=maker_id,
                comment=explanation,
                timestamp=now,
            ))
            self._recon.set_status(record.id, ReconciliationStatus.PENDING_CHECKER)

        logger.info(
            "adjustment_proposed",
            extra={
                "adjustment_id": str(entry.id),
                "reconciliation_id": str(record.id),
                "amount": str(entry.amount),
                "impact_on_prepaid": str(entry.impact_on_prepaid),
                "maker_id": maker_id,
            },
        )
        self._audit.record(AuditRecord(
            action=AuditAction.ADJUSTMENT_PROPOSED,
            actor_id=maker_id,
            resource_type="AdjustmentEntry",
            resource_id=str(entry.id),
            occurred_at=now,
            metadata={
                "reconciliationId": str(record.id),
                "amount": str(entry.amount),
                "impactOnPrepaid": str(entry.impact_on_prepaid),
            },
        ))
        return entry

    # ------------------------------------------------------------------
    # Checker
    # ------------------------------------------------------------------

    def approve(
        self, adjustment_id: UUID, checker_id: str, comment: str | None = None,
    ) -> AdjustmentEntry:
        """Approve a pending entry and recompute its reconciliation."""
        self._check_decidable(adjustment_id, checker_id)

        with LogContext.bind(actor_id=checker_id, adjustment_id=adjustment_id), \
                self._locks.hold(("adjustment", adjustment_id)):
            entry = self._check_decidable(adjustment_id, checker_id)
            comment = norm(comment) or None
            decided = entry.decided(
                AdjustmentStatus.APPROVED, checker_id, comment, self._clock.now(),
            )
            self._repo.transition_adjustment(
                decided, expected_status=AdjustmentStatus.PENDING_APPROVAL,
            )
            try:
                record = self._recon.recompute(entry.reconciliation_id)
            except Exception:
                self._revert_decision(entry, decided)
                raise
            if record is None:
                logger.warning(
                    "adjustment_approved_without_reconciliation",
                    extra={
                        "adjustment_id": str(adjustment_id),
                        "reconciliation_id": str(entry.reconciliation_id),
                    },
                )
            self._repo.append_approval_event(ApprovalEvent(
                adjustment_id=adjustment_id,
                action=ApprovalAction.APPROVED,
                user_id=checker_id,
                comment=comment,
                timestamp=decided.decided_at,
            ))

        logger.info(
            "adjustment_approved",
            extra={
                "adjustment_id": str(adjustment_id),
                "reconciliation_id": str(entry.reconciliation_id),
                "checker_id": checker_id,
                "recon_status": record.status.value if record is not None else None,
            },
        )
        self._audit.record(AuditRecord(
            action=AuditAction.ADJUSTMENT_APPROVED,
            actor_id=checker_id,
            resource_type="AdjustmentEntry",
            resource_id=str(adjustment_id),
            occurred_at=decided.decided_at,
            metadata={
                "reconciliationId": str(entry.reconciliation_id),
                "reconciliationVersion": record.version if record is not None else None,
            },
        ))
        return decided

    def reject(
        self, adjustment_id: UUID, checker_id: str, comment: str | None,
    ) -> AdjustmentEntry:
        """Reject a pending entry; the reconciliation moves to REOPENED."""
        self._check_decidable(adjustment_id, checker_id)
        if not norm(comment):
            raise MissingRejectionCommentError(str(adjustment_id))
        comment = norm(comment)

        with LogContext.bind(actor_id=checker_id, adjustment_id=adjustment_id), \
                self._locks.hold(("adjustment", adjustment_id)):
            entry = self._check_decidable(adjustment_id, checker_id)
            decided = entry.decided(
                AdjustmentStatus.REJECTED, checker_id, comment, self._clock.now(),
            )
            self._repo.transition_adjustment(
                decided, expected_status=AdjustmentStatus.PENDING_APPROVAL,
            )
            try:
                record = self._recon.get(entry.reconciliation_id)
                if record is not None:
                    self._recon.set_status(record.id, ReconciliationStatus.REOPENED)
            except Exception:
                self._revert_decision(entry, decided)
                raise
            self._repo.append_approval_event(ApprovalEvent(
                adjustment_id=adjustment_id,
                action=ApprovalAction.REJECTED,
                user_id=checker_id,
                comment=comment,
                timestamp=decided.decided_at,
            ))

        logger.info(
            "adjustment_rejected",
            extra={
                "adjustment_id": str(adjustment_id),
                "reconciliation_id": str(entry.reconciliation_id),
                "checker_id": checker_id,
            },
        )
        self._audit.record(AuditRecord(
            action=AuditAction.ADJUSTMENT_REJECTED,
            actor_id=checker_id,
            resource_type="AdjustmentEntry",
            resource_id=str(adjustment_id),
            occurred_at=decided.decided_at,
            metadata={"reconciliationId": str(entry.reconciliation_id), "comment": comment},
        ))
        return decided

    def _check_decidable(self, adjustment_id: UUID, checker_id: str) -> AdjustmentEntry:
        # Order matters: existence, then segregation of duties, then status.
        entry = self.get_adjustment(adjustment_id)
        if entry is None:
            raise AdjustmentNotFoundError(str(adjustment_id))
        if same_id(entry.maker_id, checker_id):
            raise SelfApprovalError(str(adjustment_id), checker_id)
        if not entry.is_pending:
            raise AdjustmentNotPendingError(str(adjustment_id), entry.status.value)
        return entry

    def _revert_decision(self, pending: AdjustmentEntry, decided: AdjustmentEntry) -> None:
        """Put a decided entry back to PENDING_APPROVAL after its record update failed."""
        self._repo.transition_adjustment(pending, expected_status=decided.status)
        logger.warning(
            "adjustment_decision_reverted",
            extra={
                "adjustment_id": str(pending.id),
                "reconciliation_id": str(pending.reconciliation_id),
                "reverted_status": decided.status.value,
            },
        )

    def _live_record(self, reconciliation_id: UUID) -> ReconciliationRecord:
        record = self._repo.get_reconciliation(reconciliation_id)
        if record is None or record.is_deleted:
            raise ReconciliationNotFoundError(str(reconciliation_id))
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_adjustment(self, adjustment_id: UUID) -> AdjustmentEntry | None:
        entry = self._repo.get_adjustment(adjustment_id)
        if entry is None or entry.is_deleted:
            return None
        return entry

    def list_adjustments(
        self,
        reconciliation_id: UUID | None = None,
        entity_id: Any = None,
        status: AdjustmentStatus | str | None = None,
        maker_id: Any = None,
        entity_scope: Iterable[str] | None = None,
    ) -> list[AdjustmentEntry]:
        wanted_status = AdjustmentStatus(status) if status is not None else None
        scope = {norm(e) for e in entity_scope} if entity_scope is not None else None
        source = (
            self._repo.adjustments_for(reconciliation_id)
            if reconciliation_id is not None
            else self._repo.list_adjustments()
        )
        results = []
        for entry in source:
            if norm(entity_id) and entry.entity_id != norm(entity_id):
                continue
            if wanted_status is not None and entry.status != wanted_status:
                continue
            if norm(maker_id) and not same_id(entry.maker_id, maker_id):
                continue
            if scope is not None and entry.entity_id not in scope:
                continue
            results.append(entry)
        return results

    def list_approval_events(self, adjustment_id: UUID) -> list[ApprovalEvent]:
        return list(self._repo.approval_events(adjustment_id))
