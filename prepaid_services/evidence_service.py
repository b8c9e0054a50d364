"""
prepaid_services.evidence_service -- Evidence Builder.

Read-only drill-down for one reconciliation: re-runs the formulas against
the current lines to recover the contributing rows, then pairs them with
the stored record.  Stored figures are reported as stored; data gaps come
back as warnings, never as exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from prepaid_engines.evidence import assemble_evidence
from prepaid_kernel.domain.evidence import Evidence
from prepaid_kernel.domain.repository import ReconRepository
from prepaid_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from prepaid_services.reconciliation_service import ReconciliationService

logger = get_logger("services.evidence")


class EvidenceService:
    def __init__(
        self,
        repository: ReconRepository,
        reconciliation_service: ReconciliationService,
    ) -> None:
        self._repo = repository
        self._recon = reconciliation_service

    def build_evidence(self, reconciliation_id: UUID) -> Evidence | None:
        """Evidence for a live record, or None when missing or deleted."""
        record = self._repo.get_reconciliation(reconciliation_id)
        if record is None or record.is_deleted:
            return None

        figures = self._recon.figures_for(
            record.entity_id,
            record.fiscal_year,
            record.period_id,
            record.prepaid_account,
            record.id,
        )
        approved = [
            a for a in self._repo.adjustments_for(record.id)
            if a.counts_toward_recon_entries
        ]
        evidence = assemble_evidence(
            record=record, figures=figures, approved_adjustments=approved,
        )
        if evidence.warnings:
            logger.info(
                "evidence_data_gaps",
                extra={
                    "reconciliation_id": str(record.id),
                    "warning_codes": sorted(w.code.value for w in evidence.warnings),
                },
            )
        return evidence
