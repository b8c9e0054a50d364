"""
Module: prepaid_kernel.models.adjustment
Responsibility: ORM persistence for adjustment entries and the approval trail.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Adjustment status values are limited by a CHECK constraint and
      ``amount`` must be strictly positive.
    - Approval events are append-only; the repository never updates them.

Audit relevance:
    The approval trail records who proposed, approved or rejected each
    entry and when.  Together with maker_id/checker_id on the entry it
    evidences segregation of duties.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from prepaid_kernel.db.base import Base, TrackedBase, UUIDString
from prepaid_kernel.domain.adjustment import (
    AdjustmentEntry,
    AdjustmentStatus,
    ApprovalAction,
    ApprovalEvent,
)


class AdjustmentEntryModel(TrackedBase):
    """Persistent adjustment entry."""

    __tablename__ = "adjustment_entries"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_APPROVAL', 'APPROVED', 'REJECTED')",
            name="ck_adjustment_entries_valid_status",
        ),
        CheckConstraint("amount > 0", name="ck_adjustment_entries_amount_positive"),
        Index("ix_adjustment_entries_reconciliation", "reconciliation_id", "status"),
        Index("ix_adjustment_entries_entity", "entity_id"),
    )

    reconciliation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    period_id: Mapped[str] = mapped_column(String(100), nullable=False)
    debit_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    credit_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    impact_on_prepaid: Mapped[Decimal] = mapped_column(nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    maker_id: Mapped[str] = mapped_column(String(100), nullable=False)
    checker_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    maker_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    checker_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<AdjustmentEntry {self.id} {self.amount} {self.status}>"

    def to_dto(self) -> AdjustmentEntry:
        return AdjustmentEntry(
            id=self.id,
            reconciliation_id=self.reconciliation_id,
            entity_id=self.entity_id,
            period_id=self.period_id,
            debit_account=self.debit_account,
            credit_account=self.credit_account,
            amount=self.amount,
            impact_on_prepaid=self.impact_on_prepaid,
            explanation=self.explanation,
            status=AdjustmentStatus(self.status),
            maker_id=self.maker_id,
            checker_id=self.checker_id,
            maker_comment=self.maker_comment,
            checker_comment=self.checker_comment,
            decided_at=self.decided_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )

    @staticmethod
    def values_from_dto(dto: AdjustmentEntry) -> dict:
        return {
            "reconciliation_id": dto.reconciliation_id,
            "entity_id": dto.entity_id,
            "period_id": dto.period_id,
            "debit_account": dto.debit_account,
            "credit_account": dto.credit_account,
            "amount": dto.amount,
            "impact_on_prepaid": dto.impact_on_prepaid,
            "explanation": dto.explanation,
            "status": dto.status.value,
            "maker_id": dto.maker_id,
            "checker_id": dto.checker_id,
            "maker_comment": dto.maker_comment,
            "checker_comment": dto.checker_comment,
            "decided_at": dto.decided_at,
            "created_at": dto.created_at,
            "updated_at": dto.updated_at,
            "deleted_at": dto.deleted_at,
        }

    @classmethod
    def from_dto(cls, dto: AdjustmentEntry) -> AdjustmentEntryModel:
        return cls(id=dto.id, **cls.values_from_dto(dto))


class ApprovalEventModel(Base):
    """Append-only approval trail entry."""

    __tablename__ = "approval_events"

    __table_args__ = (
        CheckConstraint(
            "action IN ('PROPOSED', 'APPROVED', 'REJECTED')",
            name="ck_approval_events_valid_action",
        ),
        Index("ix_approval_events_adjustment", "adjustment_id", "timestamp"),
    )

    adjustment_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False)

    def to_dto(self) -> ApprovalEvent:
        return ApprovalEvent(
            id=self.id,
            adjustment_id=self.adjustment_id,
            action=ApprovalAction(self.action),
            user_id=self.user_id,
            comment=self.comment,
            timestamp=self.timestamp,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalEvent, seq: int) -> ApprovalEventModel:
        return cls(
            id=dto.id,
            adjustment_id=dto.adjustment_id,
            action=dto.action.value,
            user_id=dto.user_id,
            comment=dto.comment,
            timestamp=dto.timestamp,
            seq=seq,
        )
