"""ORM models for the prepaid reconciliation kernel."""

from prepaid_kernel.models.adjustment import AdjustmentEntryModel, ApprovalEventModel
from prepaid_kernel.models.lines import (
    ScheduleLineModel,
    TrialBalanceLineModel,
    WorkingLineModel,
)
from prepaid_kernel.models.reconciliation import ReconciliationModel
from prepaid_kernel.models.reference import FiscalPeriodModel, ToleranceSettingModel

__all__ = [
    "AdjustmentEntryModel",
    "ApprovalEventModel",
    "ScheduleLineModel",
    "TrialBalanceLineModel",
    "WorkingLineModel",
    "ReconciliationModel",
    "FiscalPeriodModel",
    "ToleranceSettingModel",
]
