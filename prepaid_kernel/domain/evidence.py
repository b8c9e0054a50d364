"""
Evidence domain types (``prepaid_kernel.domain.evidence``).

Responsibility
--------------
The audit drill-down for one reconciliation: which source rows contributed,
which were missing, how each dashboard year was derived, which approved
adjustments were folded in, and a narrative of the variance.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  Built by
``prepaid_engines.evidence`` and returned by ``EvidenceService``.

Data gaps are ``DataGapWarning`` values, never exceptions: evidence is always
returned as a (possibly partial) structure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from prepaid_kernel.domain.adjustment import AdjustmentEntry
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import ReconciliationRecord
from prepaid_kernel.domain.values import decimal_str, to_decimal, to_decimal_or_none

EXPECTED_CLOSING_BREAKDOWN_FORMULA = (
    "Opening + Additions − Amortization ± Recon Entries = Total Subsystem"
)


class WarningCode(str, Enum):
    """Non-fatal data-quality annotations."""

    MISSING_TB_ROW = "MISSING_TB_ROW"
    MISSING_SCHEDULE_AMORTIZATION = "MISSING_SCHEDULE_AMORTIZATION"
    DUPLICATE_SCHEDULE_LINES = "DUPLICATE_SCHEDULE_LINES"
    SUBSYSTEM_DIVERGENCE = "SUBSYSTEM_DIVERGENCE"


@dataclass(frozen=True, slots=True)
class DataGapWarning:
    """A gap or anomaly in the source data behind a reconciliation."""

    code: WarningCode
    message: str
    detail: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.detail:
            data["detail"] = list(self.detail)
        return data


def schedule_line_evidence(line: ScheduleLine) -> dict[str, Any]:
    """The subset of a schedule line shown in drill-down views."""
    return {
        "id": str(line.id),
        "account": line.account,
        "creditAmount": decimal_str(to_decimal(line.credit_amount)),
        "debitAmount": decimal_str(to_decimal(line.debit_amount)),
        "applyDate": line.to_dict()["applyDate"],
        "headerDesc": line.description,
        "prepaidStartYear": line.start_year or None,
    }


@dataclass(frozen=True, slots=True)
class YearBreakdown:
    """How one dashboard year's begin-in-year balance was derived."""

    year: int
    original_booked_in_year: Decimal
    amortization_till_report_date: Decimal
    begin_in_year_prepaid: Decimal
    schedule_lines: tuple[ScheduleLine, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalBookedInYear": decimal_str(self.original_booked_in_year),
            "amortizationTillReportDate": decimal_str(self.amortization_till_report_date),
            "beginInYearPrepaid": decimal_str(self.begin_in_year_prepaid),
            "scheduleLines": [schedule_line_evidence(l) for l in self.schedule_lines],
        }


@dataclass(frozen=True)
class Evidence:
    """Full derivation trail for one reconciliation record."""

    record: ReconciliationRecord
    report_date: date | None
    source_tb_row: TrialBalanceLine | None
    working_line: WorkingLine | None
    schedule_lines: tuple[ScheduleLine, ...]
    schedule_by_year: tuple[YearBreakdown, ...]
    approved_adjustments: tuple[AdjustmentEntry, ...]
    warnings: tuple[DataGapWarning, ...]
    variance_explanation: str

    @property
    def reconciliation_id(self) -> UUID:
        return self.record.id

    @property
    def warning_codes(self) -> frozenset[WarningCode]:
        return frozenset(w.code for w in self.warnings)

    def _tb_row_dict(self) -> dict[str, Any] | None:
        row = self.source_tb_row
        if row is None:
            return None
        return {
            "account": row.account or self.record.prepaid_account,
            "closingBalanceSigned": decimal_str(
                to_decimal_or_none(row.closing_balance_signed)
            ),
            "lineId": str(row.id),
            "raw": row.to_dict(),
        }

    def _pprec_values_dict(self) -> dict[str, Any] | None:
        line = self.working_line
        if line is None:
            return None
        return {
            "openingBalance": decimal_str(to_decimal(line.opening_balance)),
            "additions": decimal_str(to_decimal(line.additions)),
            "amortization": decimal_str(to_decimal_or_none(line.amortization)),
            "source": "PPREC",
            "lineId": str(line.id),
        }

    def to_dict(self) -> dict[str, Any]:
        rec = self.record
        dashboard: dict[str, Any] = {
            f"beginIn{year}Prepaid": decimal_str(balance)
            for year, balance in rec.begin_in_year
        }
        dashboard.update({
            "totalSubsystem": decimal_str(rec.total_subsystem),
            "glBalance": decimal_str(rec.gl_balance),
            "difference": decimal_str(rec.difference),
            "reconEntries": decimal_str(rec.recon_entries),
            "finalDifference": decimal_str(rec.final_difference),
        })
        return {
            "reconciliationId": str(rec.id),
            "reportDate": self.report_date.isoformat() if self.report_date else None,
            "sourceTbRow": self._tb_row_dict(),
            "pprecValues": self._pprec_values_dict(),
            "pprecLines": [self.working_line.to_dict()] if self.working_line else [],
            "scheduleLinesContributing": [
                schedule_line_evidence(l) for l in self.schedule_lines
            ],
            "scheduleByYear": {
                str(b.year): b.to_dict() for b in self.schedule_by_year
            },
            "approvedAdjustments": [
                {
                    "id": str(a.id),
                    "debitAccount": a.debit_account,
                    "creditAccount": a.credit_account,
                    "amount": decimal_str(a.amount),
                    "impactOnPrepaid": decimal_str(a.impact_on_prepaid),
                }
                for a in self.approved_adjustments
            ],
            "warnings": [w.to_dict() for w in self.warnings],
            "expectedClosingBreakdown": {
                "openingBalance": decimal_str(rec.opening_balance),
                "additions": decimal_str(rec.additions),
                "amortization": decimal_str(rec.amortization),
                "expectedClosing": decimal_str(rec.expected_closing),
                "reconEntries": decimal_str(rec.recon_entries),
                "totalSubsystem": decimal_str(rec.total_subsystem),
                "formula": EXPECTED_CLOSING_BREAKDOWN_FORMULA,
            },
            "expectedClosingFormula": {
                "openingBalance": decimal_str(rec.opening_balance),
                "additions": decimal_str(rec.additions),
                "amortization": decimal_str(rec.amortization),
                "expectedClosing": decimal_str(rec.expected_closing),
                "adjustmentImpact": decimal_str(rec.recon_entries),
                "expectedClosingAdjusted": decimal_str(rec.expected_closing_adjusted),
            },
            "dashboardColumns": dashboard,
            "actualClosing": decimal_str(rec.actual_closing),
            "variance": decimal_str(rec.variance),
            "status": rec.status.value,
            "toleranceUsed": decimal_str(rec.tolerance_used),
            "varianceExplanation": self.variance_explanation,
        }
