"""
Module: prepaid_kernel.models.reconciliation
Responsibility: ORM persistence for reconciliation records.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - At most one live (deleted_at IS NULL) record per
      (entity_id, period_id, prepaid_account): partial unique index.
    - ``version`` is the compare-and-swap token; the SQL repository only
      updates a row whose stored version and status match the caller's.
    - Status values are limited by a CHECK constraint.

Failure modes:
    - IntegrityError on a second live record for the same triple.

Audit relevance:
    Records are never physically deleted; ``deleted_at`` marks soft deletion.
    ``begin_in_year`` keeps every dashboard year's balance as exact decimal
    strings so no precision is lost through JSON.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from prepaid_kernel.db.base import TrackedBase
from prepaid_kernel.domain.reconciliation import (
    ReconciliationRecord,
    ReconciliationStatus,
)


def begin_in_year_to_json(pairs: tuple[tuple[int, Decimal], ...]) -> list[list]:
    return [[int(year), str(balance)] for year, balance in pairs]


def begin_in_year_from_json(data: list | None) -> tuple[tuple[int, Decimal], ...]:
    return tuple((int(year), Decimal(balance)) for year, balance in data or ())


class ReconciliationModel(TrackedBase):
    """Persistent reconciliation record."""

    __tablename__ = "reconciliations"

    __table_args__ = (
        CheckConstraint(
            "status IN ('OPEN', 'CLOSED', 'PENDING_CHECKER', 'REOPENED')",
            name="ck_reconciliations_valid_status",
        ),
        CheckConstraint("version >= 1", name="ck_reconciliations_version_positive"),
        Index(
            "ix_reconciliations_live_triple",
            "entity_id", "period_id", "prepaid_account",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_reconciliations_entity_status", "entity_id", "status"),
    )

    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    fiscal_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    period_id: Mapped[str] = mapped_column(String(100), nullable=False)
    prepaid_account: Mapped[str] = mapped_column(String(100), nullable=False)

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False)
    additions: Mapped[Decimal] = mapped_column(nullable=False)
    amortization: Mapped[Decimal] = mapped_column(nullable=False)
    expected_closing: Mapped[Decimal] = mapped_column(nullable=False)

    begin_in_year: Mapped[list] = mapped_column(JSON, nullable=False)
    total_subsystem: Mapped[Decimal] = mapped_column(nullable=False)
    gl_balance: Mapped[Decimal | None] = mapped_column(nullable=True)
    difference: Mapped[Decimal | None] = mapped_column(nullable=True)
    recon_entries: Mapped[Decimal] = mapped_column(nullable=False)
    final_difference: Mapped[Decimal | None] = mapped_column(nullable=True)
    tolerance_used: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    expected_closing_adjusted: Mapped[Decimal] = mapped_column(nullable=False)
    variance: Mapped[Decimal | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<Reconciliation {self.entity_id}/{self.period_id}/"
            f"{self.prepaid_account} v{self.version} {self.status}>"
        )

    def to_dto(self) -> ReconciliationRecord:
        """Convert ORM model to frozen domain record."""
        return ReconciliationRecord(
            id=self.id,
            entity_id=self.entity_id,
            fiscal_year=self.fiscal_year,
            period_id=self.period_id,
            prepaid_account=self.prepaid_account,
            opening_balance=self.opening_balance,
            additions=self.additions,
            amortization=self.amortization,
            expected_closing=self.expected_closing,
            begin_in_year=begin_in_year_from_json(self.begin_in_year),
            total_subsystem=self.total_subsystem,
            gl_balance=self.gl_balance,
            difference=self.difference,
            recon_entries=self.recon_entries,
            final_difference=self.final_difference,
            tolerance_used=self.tolerance_used,
            status=ReconciliationStatus(self.status),
            expected_closing_adjusted=self.expected_closing_adjusted,
            variance=self.variance,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )

    @staticmethod
    def values_from_dto(dto: ReconciliationRecord) -> dict:
        """Column values for INSERT or UPDATE, keyed by attribute name."""
        return {
            "entity_id": dto.entity_id,
            "fiscal_year": None if dto.fiscal_year is None else str(dto.fiscal_year),
            "period_id": dto.period_id,
            "prepaid_account": dto.prepaid_account,
            "opening_balance": dto.opening_balance,
            "additions": dto.additions,
            "amortization": dto.amortization,
            "expected_closing": dto.expected_closing,
            "begin_in_year": begin_in_year_to_json(dto.begin_in_year),
            "total_subsystem": dto.total_subsystem,
            "gl_balance": dto.gl_balance,
            "difference": dto.difference,
            "recon_entries": dto.recon_entries,
            "final_difference": dto.final_difference,
            "tolerance_used": dto.tolerance_used,
            "status": dto.status.value,
            "expected_closing_adjusted": dto.expected_closing_adjusted,
            "variance": dto.variance,
            "version": dto.version,
            "created_at": dto.created_at,
            "updated_at": dto.updated_at,
            "deleted_at": dto.deleted_at,
        }

    @classmethod
    def from_dto(cls, dto: ReconciliationRecord) -> ReconciliationModel:
        return cls(id=dto.id, **cls.values_from_dto(dto))
