"""
Module: prepaid_kernel.models.lines
Responsibility: ORM persistence for the three uploaded source line kinds.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Lines are append-only; no repository path updates or deletes them.
    - ``ingest_seq`` preserves ingestion order per table.  Matching returns
      lines in that order, so the first TB/PPREC match is deterministic.
    - Accumulation amounts are stored coerced (junk -> 0); the TB closing
      balance and PPREC amortization keep NULL for "unknown".

Audit relevance:
    ``upload_id`` ties every line back to the upload batch it came from.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from prepaid_kernel.db.base import Base
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.values import norm, to_decimal, to_decimal_or_none


def _text_or_none(value) -> str | None:
    text = norm(value)
    return text if text else None


def _apply_date_text(value: date | str | None) -> str | None:
    if isinstance(value, date):
        return value.isoformat()
    return _text_or_none(value)


class ScheduleLineModel(Base):
    """Amortization schedule row."""

    __tablename__ = "schedule_lines"

    __table_args__ = (
        Index("ix_schedule_lines_key", "entity_id", "period_id", "account"),
        Index("ix_schedule_lines_entity_account", "entity_id", "account"),
    )

    ingest_seq: Mapped[int] = mapped_column(nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fiscal_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    fiscal_period: Mapped[str | None] = mapped_column(String(50), nullable=True)
    period_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    apply_date: Mapped[str | None] = mapped_column(String(40), nullable=True)
    account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expense_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    prepaid_start_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    upload_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<ScheduleLine {self.entity_id}/{self.period_id}/{self.account}>"

    def to_dto(self) -> ScheduleLine:
        return ScheduleLine(
            id=self.id,
            entity_id=self.entity_id,
            fiscal_year=self.fiscal_year,
            fiscal_period=self.fiscal_period,
            period_id=self.period_id,
            apply_date=self.apply_date,
            account=self.account,
            expense_account=self.expense_account,
            debit_amount=self.debit_amount,
            credit_amount=self.credit_amount,
            prepaid_start_year=self.prepaid_start_year,
            description=self.description,
            upload_id=self.upload_id,
        )

    @classmethod
    def from_dto(cls, dto: ScheduleLine, ingest_seq: int) -> ScheduleLineModel:
        return cls(
            id=dto.id,
            ingest_seq=ingest_seq,
            entity_id=_text_or_none(dto.entity_id),
            fiscal_year=_text_or_none(dto.fiscal_year),
            fiscal_period=_text_or_none(dto.fiscal_period),
            period_id=_text_or_none(dto.period_id),
            apply_date=_apply_date_text(dto.apply_date),
            account=_text_or_none(dto.account),
            expense_account=_text_or_none(dto.expense_account),
            debit_amount=to_decimal(dto.debit_amount),
            credit_amount=to_decimal(dto.credit_amount),
            prepaid_start_year=_text_or_none(dto.prepaid_start_year),
            description=dto.description,
            upload_id=dto.upload_id,
        )


class TrialBalanceLineModel(Base):
    """Trial-balance closing row."""

    __tablename__ = "tb_lines"

    __table_args__ = (
        Index("ix_tb_lines_key", "entity_id", "period_id", "account"),
    )

    ingest_seq: Mapped[int] = mapped_column(nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fiscal_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    fiscal_period: Mapped[str | None] = mapped_column(String(50), nullable=True)
    period_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    closing_balance_signed: Mapped[Decimal | None] = mapped_column(nullable=True)
    upload_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<TrialBalanceLine {self.entity_id}/{self.period_id}/{self.account}>"

    def to_dto(self) -> TrialBalanceLine:
        return TrialBalanceLine(
            id=self.id,
            entity_id=self.entity_id,
            fiscal_year=self.fiscal_year,
            fiscal_period=self.fiscal_period,
            period_id=self.period_id,
            account=self.account,
            closing_balance_signed=self.closing_balance_signed,
            upload_id=self.upload_id,
        )

    @classmethod
    def from_dto(cls, dto: TrialBalanceLine, ingest_seq: int) -> TrialBalanceLineModel:
        return cls(
            id=dto.id,
            ingest_seq=ingest_seq,
            entity_id=_text_or_none(dto.entity_id),
            fiscal_year=_text_or_none(dto.fiscal_year),
            fiscal_period=_text_or_none(dto.fiscal_period),
            period_id=_text_or_none(dto.period_id),
            account=_text_or_none(dto.account),
            closing_balance_signed=to_decimal_or_none(dto.closing_balance_signed),
            upload_id=dto.upload_id,
        )


class WorkingLineModel(Base):
    """PPREC working-file row."""

    __tablename__ = "pprec_lines"

    __table_args__ = (
        Index("ix_pprec_lines_key", "entity_id", "period_id", "prepaid_account"),
        Index("ix_pprec_lines_entity_account", "entity_id", "prepaid_account"),
    )

    ingest_seq: Mapped[int] = mapped_column(nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fiscal_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    fiscal_period: Mapped[str | None] = mapped_column(String(50), nullable=True)
    period_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    prepaid_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    opening_balance: Mapped[Decimal] = mapped_column(nullable=False)
    additions: Mapped[Decimal] = mapped_column(nullable=False)
    amortization: Mapped[Decimal | None] = mapped_column(nullable=True)
    upload_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WorkingLine {self.entity_id}/{self.period_id}/{self.prepaid_account}>"
        )

    def to_dto(self) -> WorkingLine:
        return WorkingLine(
            id=self.id,
            entity_id=self.entity_id,
            fiscal_year=self.fiscal_year,
            fiscal_period=self.fiscal_period,
            period_id=self.period_id,
            prepaid_account=self.prepaid_account,
            opening_balance=self.opening_balance,
            additions=self.additions,
            amortization=self.amortization,
            upload_id=self.upload_id,
        )

    @classmethod
    def from_dto(cls, dto: WorkingLine, ingest_seq: int) -> WorkingLineModel:
        return cls(
            id=dto.id,
            ingest_seq=ingest_seq,
            entity_id=_text_or_none(dto.entity_id),
            fiscal_year=_text_or_none(dto.fiscal_year),
            fiscal_period=_text_or_none(dto.fiscal_period),
            period_id=_text_or_none(dto.period_id),
            prepaid_account=_text_or_none(dto.prepaid_account),
            opening_balance=to_decimal(dto.opening_balance),
            additions=to_decimal(dto.additions),
            amortization=to_decimal_or_none(dto.amortization),
            upload_id=dto.upload_id,
        )
