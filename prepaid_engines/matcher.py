"""
prepaid_engines.matcher -- Line selection by (entity, period, fiscal year, account).

Responsibility:
    Decide whether a source line belongs to a reconciliation's scope.  The
    same rule is used for schedule, trial-balance and PPREC lines.

Architecture position:
    Engines -- pure functions, zero I/O.  ``LineIndex`` uses these as the
    reference semantics its indexed lookups must reproduce.

Invariants enforced:
    - Identifiers compare by trimmed string equality.
    - An absent (None or blank) filter matches every value on that axis.
    - Fiscal year is compared only when both the filter and the line carry
      one, so lines uploaded without a fiscal year still match.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from prepaid_kernel.domain.lines import MatchableLine
from prepaid_kernel.domain.values import norm

L = TypeVar("L", bound=MatchableLine)


def matches(
    line: MatchableLine,
    entity_id: Any = None,
    period_id: Any = None,
    fiscal_year: Any = None,
) -> bool:
    """True iff ``line`` falls inside the (entity, period, fiscal year) filter."""
    entity = norm(entity_id)
    if entity and norm(line.entity_id) != entity:
        return False
    period = norm(period_id)
    if period and norm(line.period_id) != period:
        return False
    year = norm(fiscal_year)
    line_year = norm(line.fiscal_year)
    if year and line_year and line_year != year:
        return False
    return True


def account_matches(line_account: Any, account: Any) -> bool:
    return norm(line_account) == norm(account)


def select_lines(
    lines: Iterable[L],
    entity_id: Any = None,
    period_id: Any = None,
    fiscal_year: Any = None,
    account: Any = None,
) -> list[L]:
    """Linear scan: every matching line, in input order.

    ``account=None`` selects all accounts.
    """
    return [
        line for line in lines
        if matches(line, entity_id, period_id, fiscal_year)
        and (account is None or account_matches(line.account, account))
    ]


def distinct_accounts(
    lines: Iterable[MatchableLine],
    entity_id: Any = None,
    period_id: Any = None,
    fiscal_year: Any = None,
) -> list[str]:
    """Distinct trimmed, non-empty accounts of matching lines, first-seen order."""
    seen: dict[str, None] = {}
    for line in lines:
        if matches(line, entity_id, period_id, fiscal_year):
            account = norm(line.account)
            if account:
                seen.setdefault(account, None)
    return list(seen)
