"""
Module: prepaid_engines
Responsibility:
    Re-exports the pure calculation engines of the prepaid reconciliation
    core: line matching and indexing, the reconciliation formulas, the
    adjustment rules and evidence assembly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import prepaid_kernel.domain (and sibling engine modules).
    MUST NOT import prepaid_services, the ORM or repositories.

Invariants enforced:
    - Purity: engines never read the clock; timestamps are supplied by
      services.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from prepaid_engines import LineSnapshot, compute_figures
"""

from prepaid_engines.adjustment import compute_impact_on_prepaid, resolve_amount
from prepaid_engines.evidence import (
    assemble_evidence,
    collect_warnings,
    duplicate_line_ids,
    variance_narrative,
)
from prepaid_engines.formulas import (
    ReconciliationFigures,
    WorkingValues,
    YearBalance,
    amortization_from_schedule,
    amortization_till_report_date,
    begin_in_year_balances,
    classify_status,
    compute_figures,
    original_booked_in_year,
    resolve_report_date,
    resolve_tolerance,
    sum_recon_entries,
    working_values,
)
from prepaid_engines.line_index import LineIndex, LineSnapshot
from prepaid_engines.matcher import account_matches, distinct_accounts, matches, select_lines

__all__ = [
    "compute_impact_on_prepaid",
    "resolve_amount",
    "assemble_evidence",
    "collect_warnings",
    "duplicate_line_ids",
    "variance_narrative",
    "ReconciliationFigures",
    "WorkingValues",
    "YearBalance",
    "amortization_from_schedule",
    "amortization_till_report_date",
    "begin_in_year_balances",
    "classify_status",
    "compute_figures",
    "original_booked_in_year",
    "resolve_report_date",
    "resolve_tolerance",
    "sum_recon_entries",
    "working_values",
    "LineIndex",
    "LineSnapshot",
    "account_matches",
    "distinct_accounts",
    "matches",
    "select_lines",
]
