"""
Pure domain layer.

Value objects and repository contracts with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (injected through ``Clock``)

All domain objects are immutable.
"""

from prepaid_kernel.domain.adjustment import (
    ADJUSTMENT_TRANSITIONS,
    TERMINAL_ADJUSTMENT_STATUSES,
    AdjustmentEntry,
    AdjustmentProposal,
    AdjustmentStatus,
    ApprovalAction,
    ApprovalEvent,
)
from prepaid_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from prepaid_kernel.domain.evidence import (
    DataGapWarning,
    Evidence,
    WarningCode,
    YearBreakdown,
)
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import (
    ReconciliationRecord,
    ReconciliationStatus,
)
from prepaid_kernel.domain.reference import FiscalPeriod, ToleranceSetting
from prepaid_kernel.domain.repository import ReconRepository
from prepaid_kernel.domain.values import LineKey, TripleKey

__all__ = [
    "ADJUSTMENT_TRANSITIONS",
    "TERMINAL_ADJUSTMENT_STATUSES",
    "AdjustmentEntry",
    "AdjustmentProposal",
    "AdjustmentStatus",
    "ApprovalAction",
    "ApprovalEvent",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "DataGapWarning",
    "Evidence",
    "WarningCode",
    "YearBreakdown",
    "ScheduleLine",
    "TrialBalanceLine",
    "WorkingLine",
    "ReconciliationRecord",
    "ReconciliationStatus",
    "FiscalPeriod",
    "ToleranceSetting",
    "ReconRepository",
    "LineKey",
    "TripleKey",
]
