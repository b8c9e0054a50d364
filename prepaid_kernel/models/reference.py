"""
ORM persistence for reference data: fiscal periods and tolerance settings.

Both are mastered outside the reconciliation core; these tables exist so the
SQL repository can serve them through ``ReferenceStore``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, String
from sqlalchemy.orm import Mapped, mapped_column

from prepaid_kernel.db.base import Base
from prepaid_kernel.domain.reference import FiscalPeriod, ToleranceSetting


class FiscalPeriodModel(Base):
    """A fiscal period keyed by its external string id."""

    __tablename__ = "fiscal_periods"

    period_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.period_id} ({self.code})>"

    def to_dto(self) -> FiscalPeriod:
        return FiscalPeriod(
            id=self.period_id,
            code=self.code,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            deleted_at=self.deleted_at,
        )

    @classmethod
    def from_dto(cls, dto: FiscalPeriod) -> FiscalPeriodModel:
        return cls(
            period_id=dto.id,
            code=dto.code,
            name=dto.name,
            start_date=dto.start_date,
            end_date=dto.end_date,
            deleted_at=dto.deleted_at,
        )


class ToleranceSettingModel(Base):
    """An allowed absolute variance, optionally scoped to entity and/or period."""

    __tablename__ = "tolerance_settings"

    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    period_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ToleranceSetting {self.entity_id}/{self.period_id} {self.amount}>"

    def to_dto(self) -> ToleranceSetting:
        return ToleranceSetting(
            id=self.id,
            entity_id=self.entity_id,
            period_id=self.period_id,
            amount=self.amount,
            deleted_at=self.deleted_at,
        )

    @classmethod
    def from_dto(cls, dto: ToleranceSetting) -> ToleranceSettingModel:
        return cls(
            id=dto.id,
            entity_id=dto.entity_id,
            period_id=dto.period_id,
            amount=dto.amount,
            deleted_at=dto.deleted_at,
        )
