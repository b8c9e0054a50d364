"""Error codes, HTTP statuses and structured attributes of the exception hierarchy."""

import pytest

from prepaid_kernel.exceptions import (
    AdjustmentNotFoundError,
    AdjustmentNotPendingError,
    ConcurrencyError,
    ConflictError,
    InvalidAdjustmentAmountError,
    MissingExplanationError,
    MissingRejectionCommentError,
    NotFoundError,
    OptimisticLockError,
    PermissionDeniedError,
    PrepaidReconError,
    ReconciliationLockedError,
    ReconciliationNotFoundError,
    SelfApprovalError,
    ValidationError,
)


@pytest.mark.parametrize("exc, parent, code, status", [
    (InvalidAdjustmentAmountError("-1"), ValidationError, "INVALID_ADJUSTMENT_AMOUNT", 400),
    (MissingExplanationError("r-1"), ValidationError, "MISSING_EXPLANATION", 400),
    (MissingRejectionCommentError("a-1"), ValidationError, "MISSING_REJECTION_COMMENT", 400),
    (ReconciliationNotFoundError("r-1"), NotFoundError, "RECONCILIATION_NOT_FOUND", 404),
    (AdjustmentNotFoundError("a-1"), NotFoundError, "ADJUSTMENT_NOT_FOUND", 404),
    (ReconciliationLockedError("r-1"), ConflictError, "RECONCILIATION_LOCKED", 400),
    (AdjustmentNotPendingError("a-1", "APPROVED"), ConflictError, "ADJUSTMENT_NOT_PENDING", 400),
    (SelfApprovalError("a-1", "maker-1"), PermissionDeniedError, "SELF_APPROVAL", 403),
    (OptimisticLockError("reconciliation", "r-1", 2), ConcurrencyError,
     "OPTIMISTIC_LOCK_CONFLICT", 409),
])
def test_code_and_status(exc, parent, code, status):
    assert isinstance(exc, parent)
    assert isinstance(exc, PrepaidReconError)
    assert exc.code == code
    assert exc.http_status == status


def test_attributes_carry_context():
    exc = AdjustmentNotPendingError("a-1", "REJECTED")
    assert exc.adjustment_id == "a-1"
    assert exc.current_status == "REJECTED"
    assert "REJECTED" in str(exc)

    lock = OptimisticLockError("reconciliation", "r-1", 3)
    assert (lock.entity_type, lock.entity_id, lock.expected_version) == ("reconciliation", "r-1", 3)

    self_approval = SelfApprovalError("a-1", "maker-1")
    assert self_approval.actor_id == "maker-1"


def test_invalid_amount_keeps_raw_input():
    exc = InvalidAdjustmentAmountError("abc")
    assert exc.amount == "abc"
    assert "'abc'" in str(exc)


def test_base_defaults():
    assert PrepaidReconError.code == "PREPAID_RECON_ERROR"
    assert PrepaidReconError.http_status == 500
