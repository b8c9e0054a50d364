"""
Adjustment domain types (``prepaid_kernel.domain.adjustment``).

Responsibility
--------------
Value objects for the maker/checker workflow: the adjustment lifecycle
state machine, the proposal input, the adjustment entry itself and the
append-only approval trail.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ADJUSTMENT_TRANSITIONS`` defines the only valid status transitions.
  APPROVED and REJECTED are terminal: an entry is decided exactly once and
  never edited afterwards.  A correction is a new proposal.
* ``AdjustmentEntry.amount`` is strictly positive; the sign lives in
  ``impact_on_prepaid``.
* ``ApprovalEvent`` is immutable and append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from prepaid_kernel.domain.values import decimal_str


class AdjustmentStatus(str, Enum):
    """Adjustment entry lifecycle states."""

    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


ADJUSTMENT_TRANSITIONS: dict[AdjustmentStatus, frozenset[AdjustmentStatus]] = {
    AdjustmentStatus.PENDING_APPROVAL: frozenset({
        AdjustmentStatus.APPROVED,
        AdjustmentStatus.REJECTED,
    }),
    AdjustmentStatus.APPROVED: frozenset(),
    AdjustmentStatus.REJECTED: frozenset(),
}

TERMINAL_ADJUSTMENT_STATUSES: frozenset[AdjustmentStatus] = frozenset({
    AdjustmentStatus.APPROVED,
    AdjustmentStatus.REJECTED,
})


class ApprovalAction(str, Enum):
    """Actions recorded on the approval trail."""

    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class AdjustmentProposal:
    """Maker input for a correcting entry.

    ``amount`` wins over the ``debit_amount`` / ``credit_amount`` aliases.
    ``entity_id`` / ``period_id`` default to the reconciliation's own.
    """

    reconciliation_id: UUID
    explanation: str | None
    debit_account: str | None = None
    credit_account: str | None = None
    amount: Any = None
    debit_amount: Any = None
    credit_amount: Any = None
    entity_id: str | None = None
    period_id: str | None = None


@dataclass(frozen=True)
class AdjustmentEntry:
    """A proposed correcting entry against one reconciliation."""

    reconciliation_id: UUID
    entity_id: str
    period_id: str
    debit_account: str | None
    credit_account: str | None
    amount: Decimal
    impact_on_prepaid: Decimal
    explanation: str
    maker_id: str
    created_at: datetime
    updated_at: datetime
    status: AdjustmentStatus = AdjustmentStatus.PENDING_APPROVAL
    checker_id: str | None = None
    maker_comment: str | None = None
    checker_comment: str | None = None
    decided_at: datetime | None = None
    deleted_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def is_pending(self) -> bool:
        return self.status == AdjustmentStatus.PENDING_APPROVAL

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def counts_toward_recon_entries(self) -> bool:
        """Only approved, live entries move ``reconEntries``."""
        return self.status == AdjustmentStatus.APPROVED and not self.is_deleted

    def decided(
        self,
        status: AdjustmentStatus,
        checker_id: str,
        comment: str | None,
        at: datetime,
    ) -> AdjustmentEntry:
        """Return the entry after a checker decision.

        Raises:
            ValueError: if ``status`` is not reachable from the current status.
        """
        if status not in ADJUSTMENT_TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal adjustment transition {self.status.value} -> {status.value}"
            )
        return replace(
            self,
            status=status,
            checker_id=checker_id,
            checker_comment=comment,
            decided_at=at,
            updated_at=at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "reconciliationId": str(self.reconciliation_id),
            "entityId": self.entity_id,
            "periodId": self.period_id,
            "debitAccount": self.debit_account,
            "creditAccount": self.credit_account,
            "amount": decimal_str(self.amount),
            "impactOnPrepaid": decimal_str(self.impact_on_prepaid),
            "explanation": self.explanation,
            "status": self.status.value,
            "makerId": self.maker_id,
            "checkerId": self.checker_id,
            "makerComment": self.maker_comment,
            "checkerComment": self.checker_comment,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "deletedAt": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Immutable entry on the approval trail."""

    adjustment_id: UUID
    action: ApprovalAction
    user_id: str
    comment: str | None
    timestamp: datetime
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "adjustmentId": str(self.adjustment_id),
            "action": self.action.value,
            "userId": self.user_id,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat(),
        }
