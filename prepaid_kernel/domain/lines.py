"""
Source line value objects (``prepaid_kernel.domain.lines``).

Responsibility
--------------
Frozen records for the three uploaded sources a reconciliation is built
from: amortization schedule lines, trial-balance lines and PPREC working
lines.  Lines arrive already column-mapped and type-coerced by the external
ingestion layer; they are immutable once stored.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects, zero I/O.

Invariants enforced
-------------------
* All lines are ``frozen=True``.
* Every line exposes ``entity_id``, ``period_id``, ``fiscal_year`` and
  ``account`` so the matcher can treat the three kinds uniformly.
* ``WorkingLine.amortization is None`` means "derive from the schedule";
  ``TrialBalanceLine.closing_balance_signed is None`` means "unknown".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID, uuid4

from prepaid_kernel.domain.values import ZERO, decimal_str, norm, to_decimal


class MatchableLine(Protocol):
    """Dimensions shared by every line kind."""

    @property
    def entity_id(self) -> str | None: ...

    @property
    def period_id(self) -> str | None: ...

    @property
    def fiscal_year(self) -> int | str | None: ...

    @property
    def account(self) -> str | None: ...


def _date_str(value: date | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True, slots=True)
class ScheduleLine:
    """One amortization schedule row.

    ``account`` is the prepaid account the amortization is credited to;
    amortization is modelled as the line's ``credit_amount``.
    """

    entity_id: str | None
    fiscal_year: int | str | None
    period_id: str | None
    account: str | None
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    apply_date: date | str | None = None
    fiscal_period: str | None = None
    expense_account: str | None = None
    prepaid_start_year: int | str | None = None
    description: str | None = None
    upload_id: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def amount_signed(self) -> Decimal:
        """Debit minus credit."""
        return to_decimal(self.debit_amount) - to_decimal(self.credit_amount)

    @property
    def start_year(self) -> str:
        """Prepaid start year, defaulting to the fiscal year."""
        explicit = norm(self.prepaid_start_year)
        return explicit if explicit else norm(self.fiscal_year)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "entity": self.entity_id,
            "fiscalYear": self.fiscal_year,
            "fiscalPeriod": self.fiscal_period,
            "periodId": self.period_id,
            "applyDate": _date_str(self.apply_date),
            "account": self.account,
            "expenseAccount": self.expense_account,
            "debitAmount": decimal_str(to_decimal(self.debit_amount)),
            "creditAmount": decimal_str(to_decimal(self.credit_amount)),
            "amountSigned": decimal_str(self.amount_signed),
            "prepaidStartYear": self.start_year or None,
            "headerDesc": self.description,
            "uploadId": self.upload_id,
        }


@dataclass(frozen=True, slots=True)
class TrialBalanceLine:
    """One trial-balance closing row."""

    entity_id: str | None
    fiscal_year: int | str | None
    period_id: str | None
    account: str | None
    closing_balance_signed: Decimal | None = None
    fiscal_period: str | None = None
    upload_id: str | None = None
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "entity": self.entity_id,
            "fiscalYear": self.fiscal_year,
            "fiscalPeriod": self.fiscal_period,
            "periodId": self.period_id,
            "account": self.account,
            "closingBalanceSigned": decimal_str(self.closing_balance_signed),
            "uploadId": self.upload_id,
        }


@dataclass(frozen=True, slots=True)
class WorkingLine:
    """One PPREC movement row: opening, additions and (optionally) amortization."""

    entity_id: str | None
    fiscal_year: int | str | None
    period_id: str | None
    prepaid_account: str | None
    opening_balance: Decimal = ZERO
    additions: Decimal = ZERO
    amortization: Decimal | None = None
    fiscal_period: str | None = None
    upload_id: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def account(self) -> str | None:
        return self.prepaid_account

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "entity": self.entity_id,
            "fiscalYear": self.fiscal_year,
            "fiscalPeriod": self.fiscal_period,
            "periodId": self.period_id,
            "prepaidAccount": self.prepaid_account,
            "openingBalance": decimal_str(to_decimal(self.opening_balance)),
            "additions": decimal_str(to_decimal(self.additions)),
            "amortization": decimal_str(self.amortization),
            "uploadId": self.upload_id,
        }
