"""
prepaid_engines.adjustment -- Pure rules for correcting entries.

Responsibility:
    Pick the proposal amount and derive an entry's signed effect on the
    prepaid balance.  Validation errors are raised by the workflow service;
    these functions only compute.

Architecture position:
    Engines -- pure functions, zero I/O.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from prepaid_kernel.domain.adjustment import AdjustmentProposal
from prepaid_kernel.domain.values import ZERO, norm, to_decimal_or_none


def resolve_amount(proposal: AdjustmentProposal) -> tuple[Decimal | None, Any]:
    """First present amount among ``amount``, ``debit_amount``, ``credit_amount``.

    Returns (parsed, raw).  ``parsed`` is None when no alias holds a number;
    ``raw`` is the value that was considered, for error reporting.
    """
    for raw in (proposal.amount, proposal.debit_amount, proposal.credit_amount):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        return to_decimal_or_none(raw), raw
    return None, None


def compute_impact_on_prepaid(
    debit_account: Any,
    credit_account: Any,
    amount: Decimal,
    prepaid_account: Any,
) -> Decimal:
    """Debiting prepaid adds ``amount``; crediting prepaid subtracts it.

    An entry naming neither account, or touching prepaid on both sides,
    has no net impact.  A blank prepaid account matches nothing.
    """
    debit, credit = norm(debit_account), norm(credit_account)
    prepaid = norm(prepaid_account)
    if not prepaid or (not debit and not credit):
        return ZERO
    impact = ZERO
    if debit == prepaid:
        impact += amount
    if credit == prepaid:
        impact -= amount
    return impact
