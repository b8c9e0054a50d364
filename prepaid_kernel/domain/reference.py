"""
Reference data read by the reconciliation core.

Fiscal periods and tolerance settings are mastered elsewhere (out of scope);
the core only reads them.  A period resolves the report date used for the
"amortization till report date" cut-off; tolerance settings resolve the
absolute variance below which a reconciliation is CLOSED.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from prepaid_kernel.domain.values import decimal_str


@dataclass(frozen=True, slots=True)
class FiscalPeriod:
    """A fiscal period as mastered externally (e.g. code ``2024_12``)."""

    id: str
    code: str | None = None
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True, slots=True)
class ToleranceSetting:
    """An allowed absolute variance.

    A null ``entity_id`` / ``period_id`` matches every entity / period.
    """

    amount: Decimal
    entity_id: str | None = None
    period_id: str | None = None
    deleted_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "entityId": self.entity_id,
            "periodId": self.period_id,
            "amount": decimal_str(self.amount),
        }
