"""
Typed Exception Hierarchy for the Prepaid Reconciliation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the thin HTTP layer, batch jobs, tests) must branch on the kind of
failure, never on message text. Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a ``code`` class attribute (machine-readable, API-safe)
  3. Carries an ``http_status`` class attribute for the HTTP adapter
  4. Stores its context as attributes (not just a message string)

Example:
    try:
        workflow.approve(adjustment_id, checker_id="u-2")
    except SelfApprovalError as e:
        return {"error": e.code, "adjustment": str(e.adjustment_id)}, e.http_status

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PrepaidReconError (base)
    |
    +-- ValidationError                     400
    |   +-- InvalidAdjustmentAmountError
    |   +-- MissingExplanationError
    |   +-- MissingRejectionCommentError
    |
    +-- NotFoundError                       404
    |   +-- ReconciliationNotFoundError
    |   +-- AdjustmentNotFoundError
    |
    +-- ConflictError                       400
    |   +-- ReconciliationLockedError
    |   +-- AdjustmentNotPendingError
    |
    +-- PermissionDeniedError               403
    |   +-- SelfApprovalError
    |
    +-- ConcurrencyError                    409
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------------
Validation   | INVALID_ADJUSTMENT_AMOUNT | Amount missing, non-numeric or <= 0
             | MISSING_EXPLANATION       | Proposal without explanation
             | MISSING_REJECTION_COMMENT | Rejection without a reason
-------------|---------------------------|------------------------------------------
Not found    | RECONCILIATION_NOT_FOUND  | Unknown or soft-deleted reconciliation
             | ADJUSTMENT_NOT_FOUND      | Unknown or soft-deleted adjustment
-------------|---------------------------|------------------------------------------
Conflict     | RECONCILIATION_LOCKED     | Proposal against a CLOSED reconciliation
             | ADJUSTMENT_NOT_PENDING    | Decision on an already-decided adjustment
-------------|---------------------------|------------------------------------------
Permission   | SELF_APPROVAL             | Maker acting as checker on own entry
-------------|---------------------------|------------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Record version changed underneath a write

Data gaps (missing TB row, missing schedule amortization, duplicate
schedule lines) are NOT exceptions. They are ``DataGapWarning`` codes
attached to evidence output; see ``prepaid_kernel.domain.evidence``.
"""


class PrepaidReconError(Exception):
    """
    Base exception for all prepaid reconciliation errors.

    All subclasses must define a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PREPAID_RECON_ERROR"
    http_status: int = 500


# Validation exceptions


class ValidationError(PrepaidReconError):
    """Input failed validation; the operation was not attempted."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidAdjustmentAmountError(ValidationError):
    """Adjustment amount is missing, non-numeric, zero or negative."""

    code: str = "INVALID_ADJUSTMENT_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount!r}")


class MissingExplanationError(ValidationError):
    """Adjustment proposed without an explanation."""

    code: str = "MISSING_EXPLANATION"

    def __init__(self, reconciliation_id: str):
        self.reconciliation_id = reconciliation_id
        super().__init__("Explanation is mandatory")


class MissingRejectionCommentError(ValidationError):
    """Adjustment rejected without a reason."""

    code: str = "MISSING_REJECTION_COMMENT"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__("Rejection reason is mandatory")


# Not-found exceptions


class NotFoundError(PrepaidReconError):
    """Referenced object does not exist or is soft-deleted."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class ReconciliationNotFoundError(NotFoundError):
    """Reconciliation with given ID was not found."""

    code: str = "RECONCILIATION_NOT_FOUND"

    def __init__(self, reconciliation_id: str):
        self.reconciliation_id = reconciliation_id
        super().__init__(f"Reconciliation not found: {reconciliation_id}")


class AdjustmentNotFoundError(NotFoundError):
    """Adjustment entry with given ID was not found."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__(f"Adjustment not found: {adjustment_id}")


# Conflict exceptions


class ConflictError(PrepaidReconError):
    """Object is in a state that does not allow the operation."""

    code: str = "CONFLICT"
    http_status: int = 400


class ReconciliationLockedError(ConflictError):
    """CLOSED reconciliations are locked against new adjustments."""

    code: str = "RECONCILIATION_LOCKED"

    def __init__(self, reconciliation_id: str):
        self.reconciliation_id = reconciliation_id
        super().__init__(
            f"Reconciliation {reconciliation_id} is closed and locked; "
            "no new adjustments."
        )


class AdjustmentNotPendingError(ConflictError):
    """Approve/reject attempted on an adjustment that was already decided."""

    code: str = "ADJUSTMENT_NOT_PENDING"

    def __init__(self, adjustment_id: str, current_status: str):
        self.adjustment_id = adjustment_id
        self.current_status = current_status
        super().__init__(
            f"Adjustment {adjustment_id} is not pending approval "
            f"(status: {current_status})"
        )


# Permission exceptions


class PermissionDeniedError(PrepaidReconError):
    """Actor is not allowed to perform the operation."""

    code: str = "PERMISSION_DENIED"
    http_status: int = 403


class SelfApprovalError(PermissionDeniedError):
    """A maker attempted to approve or reject their own adjustment."""

    code: str = "SELF_APPROVAL"

    def __init__(self, adjustment_id: str, actor_id: str):
        self.adjustment_id = adjustment_id
        self.actor_id = actor_id
        super().__init__(
            f"No self-approval: {actor_id} proposed adjustment {adjustment_id}"
        )


# Concurrency exceptions


class ConcurrencyError(PrepaidReconError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    http_status: int = 409


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, "
            "entity was modified by another writer"
        )
