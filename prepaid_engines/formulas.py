"""
prepaid_engines.formulas -- Reconciliation figures for one (entity, period, account).

Responsibility:
    The canonical reconciliation math:

        A) Begin in YYYY = Original booked in YYYY
                           - Amortization till report date (start year YYYY)
        B) Total Subsystem = SUM(Begin in YYYY) over the dashboard years
        C) GL Balance = TB signed closing balance (None if no TB row)
        D) Difference = Total Subsystem - GL Balance
        E) Recon Entries = SUM(impact_on_prepaid) of approved adjustments
        F) Final Difference = Difference - Recon Entries
        G) Status = CLOSED if |Final Difference| <= Tolerance else OPEN

    plus the PPREC movement view (opening + additions - amortization =
    expected closing) kept alongside for audit.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.
    ``ReconciliationService`` gathers inputs from the repository, calls
    ``compute_figures`` and persists the result.

Invariants enforced:
    - Decimal-only arithmetic.
    - None propagates: no TB row -> gl_balance, difference, final_difference
      and variance are all None and status is OPEN.
    - Accumulations treat junk and blanks as 0; balances keep None.
    - Identical inputs produce identical figures.

Failure modes:
    - None.  Data gaps produce zeros/None, never exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from prepaid_engines.line_index import LineSnapshot
from prepaid_engines.tracer import traced_engine
from prepaid_kernel.domain.adjustment import AdjustmentEntry
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import ReconciliationStatus
from prepaid_kernel.domain.reference import FiscalPeriod, ToleranceSetting
from prepaid_kernel.domain.values import (
    ZERO,
    norm,
    parse_ymd,
    report_date_from_code,
    report_date_from_fiscal,
    to_decimal,
    to_decimal_or_none,
)


# ---------------------------------------------------------------------------
# Report date
# ---------------------------------------------------------------------------


def resolve_report_date(
    period: FiscalPeriod | None,
    period_id: Any,
    fiscal_year: Any = None,
    fiscal_period: Any = None,
) -> date | None:
    """Cut-off date for "amortization till report date".

    Order: the period's end date, then a ``YYYY_MM`` / ``YYYY-MM`` period
    code (or the period id itself), then (fiscal year, numeric fiscal
    period).  None when nothing resolves.
    """
    if norm(period_id):
        live = period if period is not None and not period.is_deleted else None
        if live is not None and live.end_date is not None:
            return parse_ymd(live.end_date)
        code = live.code if live is not None and live.code else period_id
        from_code = report_date_from_code(code)
        if from_code is not None:
            return from_code
    return report_date_from_fiscal(fiscal_year, fiscal_period)


# ---------------------------------------------------------------------------
# PPREC movement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkingValues:
    """Opening/additions/amortization as read from one PPREC line."""

    opening_balance: Decimal
    additions: Decimal
    amortization: Decimal | None
    line: WorkingLine | None = None

    @property
    def source(self) -> str:
        return "PPREC"


def working_values(line: WorkingLine | None) -> WorkingValues | None:
    if line is None:
        return None
    return WorkingValues(
        opening_balance=to_decimal(line.opening_balance),
        additions=to_decimal(line.additions),
        amortization=to_decimal_or_none(line.amortization),
        line=line,
    )


def amortization_from_schedule(lines: Iterable[ScheduleLine]) -> Decimal:
    """Amortization is modelled as schedule ``credit_amount``."""
    return sum((to_decimal(l.credit_amount) for l in lines), ZERO)


# ---------------------------------------------------------------------------
# Begin-in-year walk
# ---------------------------------------------------------------------------


def original_booked_in_year(working_lines: Iterable[WorkingLine], year: int) -> Decimal:
    """SUM(PPREC additions) with fiscal year == ``year``, all periods."""
    target = str(year)
    return sum(
        (to_decimal(l.additions) for l in working_lines if norm(l.fiscal_year) == target),
        ZERO,
    )


def amortization_till_report_date(
    schedule_lines: Iterable[ScheduleLine],
    year: int,
    report_date: date | None,
) -> tuple[Decimal, tuple[ScheduleLine, ...]]:
    """SUM(credit_amount) with prepaid start year == ``year`` and apply date <= report date.

    Lines whose apply date is missing or unparseable are included; with no
    report date no cut-off applies.
    """
    target = str(year)
    selected: list[ScheduleLine] = []
    for line in schedule_lines:
        if line.start_year != target:
            continue
        if report_date is not None:
            applied = parse_ymd(line.apply_date)
            if applied is not None and applied > report_date:
                continue
        selected.append(line)
    return amortization_from_schedule(selected), tuple(selected)


@dataclass(frozen=True)
class YearBalance:
    """Derivation of one dashboard year's begin-in-year balance."""

    year: int
    original_booked: Decimal
    amortization_till_report_date: Decimal
    schedule_lines: tuple[ScheduleLine, ...] = ()

    @property
    def begin_in_year(self) -> Decimal:
        return self.original_booked - self.amortization_till_report_date


def begin_in_year_balances(
    working_lines: Sequence[WorkingLine],
    schedule_lines: Sequence[ScheduleLine],
    years: Iterable[int],
    report_date: date | None,
) -> tuple[YearBalance, ...]:
    """Begin-in-year balance per dashboard year.

    ``working_lines`` / ``schedule_lines`` are every line for the
    (entity, account) pair, across all periods.
    """
    balances = []
    for year in years:
        amortization, lines = amortization_till_report_date(
            schedule_lines, year, report_date,
        )
        balances.append(YearBalance(
            year=year,
            original_booked=original_booked_in_year(working_lines, year),
            amortization_till_report_date=amortization,
            schedule_lines=lines,
        ))
    return tuple(balances)


# ---------------------------------------------------------------------------
# Tolerance, recon entries, status
# ---------------------------------------------------------------------------


def resolve_tolerance(
    settings: Iterable[ToleranceSetting],
    entity_id: Any,
    period_id: Any,
    default: Decimal = ZERO,
) -> Decimal:
    """Most specific live rule wins.

    Specificity: (entity, period) > entity only > period only > global.
    A blank entity/period on a rule matches everything on that axis.
    Among equally specific rules the first one stored wins.
    """
    entity, period = norm(entity_id), norm(period_id)
    best: ToleranceSetting | None = None
    best_rank = -1
    for setting in settings:
        if setting.is_deleted:
            continue
        rule_entity, rule_period = norm(setting.entity_id), norm(setting.period_id)
        if rule_entity and rule_entity != entity:
            continue
        if rule_period and rule_period != period:
            continue
        rank = (2 if rule_entity else 0) + (1 if rule_period else 0)
        if rank > best_rank:
            best, best_rank = setting, rank
    if best is None:
        return default
    return to_decimal(best.amount)


def sum_recon_entries(
    adjustments: Iterable[AdjustmentEntry], reconciliation_id: UUID,
) -> Decimal:
    """SUM(impact_on_prepaid) of approved, live entries for one record."""
    return sum(
        (
            a.impact_on_prepaid
            for a in adjustments
            if a.reconciliation_id == reconciliation_id and a.counts_toward_recon_entries
        ),
        ZERO,
    )


def classify_status(
    final_difference: Decimal | None, tolerance: Decimal,
) -> ReconciliationStatus:
    if final_difference is not None and abs(final_difference) <= tolerance:
        return ReconciliationStatus.CLOSED
    return ReconciliationStatus.OPEN


# ---------------------------------------------------------------------------
# Full computation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationFigures:
    """Every computed number for one triple, plus the lines behind them."""

    report_date: date | None
    opening_balance: Decimal
    additions: Decimal
    amortization: Decimal
    expected_closing: Decimal
    years: tuple[YearBalance, ...]
    total_subsystem: Decimal
    gl_balance: Decimal | None
    difference: Decimal | None
    recon_entries: Decimal
    final_difference: Decimal | None
    tolerance_used: Decimal
    status: ReconciliationStatus
    expected_closing_adjusted: Decimal
    variance: Decimal | None
    working: WorkingValues | None
    tb_line: TrialBalanceLine | None
    period_schedule_lines: tuple[ScheduleLine, ...]

    @property
    def begin_in_year(self) -> tuple[tuple[int, Decimal], ...]:
        return tuple((y.year, y.begin_in_year) for y in self.years)

    @property
    def subsystem_diverges(self) -> bool:
        """Total Subsystem and the PPREC expected closing disagree."""
        return self.total_subsystem != self.expected_closing


@traced_engine(
    "prepaid_formulas", "1.0",
    fingerprint_fields=("entity_id", "fiscal_year", "period_id", "prepaid_account"),
)
def compute_figures(
    *,
    entity_id: str,
    fiscal_year: Any,
    period_id: str,
    prepaid_account: str,
    reconciliation_id: UUID,
    lines: LineSnapshot,
    period: FiscalPeriod | None,
    tolerance_settings: Iterable[ToleranceSetting],
    adjustments: Iterable[AdjustmentEntry],
    dashboard_years: Sequence[int],
    default_tolerance: Decimal = ZERO,
) -> ReconciliationFigures:
    """Compute all reconciliation figures for one (entity, period, account)."""
    working_line = lines.working.first(entity_id, period_id, fiscal_year, prepaid_account)
    tb_line = lines.trial_balance.first(entity_id, period_id, fiscal_year, prepaid_account)
    period_schedule = tuple(
        lines.schedule.select(entity_id, period_id, fiscal_year, prepaid_account)
    )

    # Step 1-2: PPREC movement
    working = working_values(working_line)
    opening = working.opening_balance if working else ZERO
    additions = working.additions if working else ZERO
    if working is not None and working.amortization is not None:
        amortization = working.amortization
    else:
        amortization = amortization_from_schedule(period_schedule)
    expected_closing = opening + additions - amortization

    # Step 3-4: begin-in-year walk
    fiscal_period = None
    for source in (working_line, tb_line):
        if source is not None and norm(source.fiscal_period):
            fiscal_period = source.fiscal_period
            break
    report_date = resolve_report_date(period, period_id, fiscal_year, fiscal_period)
    years = begin_in_year_balances(
        lines.working.by_entity_account(entity_id, prepaid_account),
        lines.schedule.by_entity_account(entity_id, prepaid_account),
        dashboard_years,
        report_date,
    )
    total_subsystem = sum((y.begin_in_year for y in years), ZERO)

    # Step 5-9: GL comparison
    gl_balance = to_decimal_or_none(tb_line.closing_balance_signed) if tb_line else None
    difference = total_subsystem - gl_balance if gl_balance is not None else None
    tolerance = resolve_tolerance(tolerance_settings, entity_id, period_id, default_tolerance)
    recon_entries = sum_recon_entries(adjustments, reconciliation_id)
    final_difference = difference - recon_entries if difference is not None else None
    status = classify_status(final_difference, tolerance)

    expected_closing_adjusted = total_subsystem + recon_entries
    variance = gl_balance - expected_closing_adjusted if gl_balance is not None else None

    return ReconciliationFigures(
        report_date=report_date,
        opening_balance=opening,
        additions=additions,
        amortization=amortization,
        expected_closing=expected_closing,
        years=years,
        total_subsystem=total_subsystem,
        gl_balance=gl_balance,
        difference=difference,
        recon_entries=recon_entries,
        final_difference=final_difference,
        tolerance_used=tolerance,
        status=status,
        expected_closing_adjusted=expected_closing_adjusted,
        variance=variance,
        working=working,
        tb_line=tb_line,
        period_schedule_lines=period_schedule,
    )
