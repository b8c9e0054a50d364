"""
prepaid_services -- stateful orchestration over the reconciliation kernel.

``ReconciliationService`` runs and stores the formulas, ``AdjustmentWorkflow``
drives maker/checker corrections and ``EvidenceService`` builds the audit
drill-down.  All three share one repository, clock, audit sink and lock
registry.
"""

from prepaid_services.adjustment_service import AdjustmentWorkflow
from prepaid_services.audit import (
    SYSTEM_ACTOR,
    AuditAction,
    AuditRecord,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from prepaid_services.evidence_service import EvidenceService
from prepaid_services.reconciliation_service import ReconciliationService
from prepaid_services.runtime import configure_runtime

__all__ = [
    "AdjustmentWorkflow",
    "AuditAction",
    "AuditRecord",
    "AuditSink",
    "EvidenceService",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "ReconciliationService",
    "SYSTEM_ACTOR",
    "configure_runtime",
]
