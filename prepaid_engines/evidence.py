"""
prepaid_engines.evidence -- Assemble the audit trail behind one reconciliation.

Responsibility:
    Combine a stored record, freshly derived figures and the approved
    adjustments into an ``Evidence`` value: contributing source rows,
    per-year derivation, data-gap warnings and a variance narrative.

Architecture position:
    Engines -- pure assembly, zero I/O.  ``EvidenceService`` does the reads.

Invariants enforced:
    - Dashboard numbers come from the stored record, so the evidence always
      explains what the user saw; source rows come from the current lines.
    - Data gaps become ``DataGapWarning`` entries, never exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prepaid_engines.formulas import ReconciliationFigures
from prepaid_engines.tracer import traced_engine
from prepaid_kernel.domain.adjustment import AdjustmentEntry
from prepaid_kernel.domain.evidence import (
    DataGapWarning,
    Evidence,
    WarningCode,
    YearBreakdown,
)
from prepaid_kernel.domain.lines import ScheduleLine
from prepaid_kernel.domain.reconciliation import ReconciliationRecord


def duplicate_line_ids(lines: Iterable[ScheduleLine]) -> tuple[str, ...]:
    """Every repeated occurrence of a line id (first occurrences excluded)."""
    seen: set[str] = set()
    repeats: list[str] = []
    for line in lines:
        line_id = str(line.id)
        if line_id in seen:
            repeats.append(line_id)
        else:
            seen.add(line_id)
    return tuple(repeats)


def variance_narrative(record: ReconciliationRecord) -> str:
    """One-sentence account of how the final difference was reached."""
    if record.gl_balance is None or record.difference is None:
        return "GL Balance not available; cannot compute variance."
    return (
        f"Total Subsystem ({record.total_subsystem}) − GL Balance ({record.gl_balance}) "
        f"= Difference ({record.difference}). "
        f"After Recon Entries ({record.recon_entries}): "
        f"Final Difference = {record.final_difference}. "
        f"Status: {record.status.value} (tolerance {record.tolerance_used})."
    )


def collect_warnings(
    record: ReconciliationRecord, figures: ReconciliationFigures,
) -> tuple[DataGapWarning, ...]:
    warnings: list[DataGapWarning] = []
    if figures.tb_line is None:
        warnings.append(DataGapWarning(
            WarningCode.MISSING_TB_ROW,
            "No Trial Balance row found for this account and period.",
        ))
    pprec_amortization = figures.working.amortization if figures.working else None
    if not figures.period_schedule_lines and not pprec_amortization:
        warnings.append(DataGapWarning(
            WarningCode.MISSING_SCHEDULE_AMORTIZATION,
            "No schedule lines found for amortization; PPREC amortization not present.",
        ))
    repeats = duplicate_line_ids(figures.period_schedule_lines)
    if repeats:
        warnings.append(DataGapWarning(
            WarningCode.DUPLICATE_SCHEDULE_LINES,
            "Duplicate schedule line references detected.",
            detail=repeats,
        ))
    if record.total_subsystem != record.expected_closing:
        warnings.append(DataGapWarning(
            WarningCode.SUBSYSTEM_DIVERGENCE,
            "Total Subsystem differs from Opening + Additions − Amortization.",
            detail=(str(record.total_subsystem), str(record.expected_closing)),
        ))
    return tuple(warnings)


@traced_engine("prepaid_evidence", "1.0", fingerprint_fields=("record",))
def assemble_evidence(
    *,
    record: ReconciliationRecord,
    figures: ReconciliationFigures,
    approved_adjustments: Sequence[AdjustmentEntry],
) -> Evidence:
    stored_years = {year for year, _ in record.begin_in_year}
    breakdown = tuple(
        YearBreakdown(
            year=y.year,
            original_booked_in_year=y.original_booked,
            amortization_till_report_date=y.amortization_till_report_date,
            begin_in_year_prepaid=(
                record.begin_in(y.year) if y.year in stored_years else y.begin_in_year
            ),
            schedule_lines=y.schedule_lines,
        )
        for y in figures.years
    )
    return Evidence(
        record=record,
        report_date=figures.report_date,
        source_tb_row=figures.tb_line,
        working_line=figures.working.line if figures.working else None,
        schedule_lines=figures.period_schedule_lines,
        schedule_by_year=breakdown,
        approved_adjustments=tuple(approved_adjustments),
        warnings=collect_warnings(record, figures),
        variance_explanation=variance_narrative(record),
    )
