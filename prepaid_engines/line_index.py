"""
prepaid_engines.line_index -- Composite-key index over one line collection.

Responsibility:
    Replace repeated linear scans with dictionary lookups keyed by
    ``LineKey(entity_id, period_id, account)``, plus an
    ``(entity_id, account)`` index for the cross-period begin-in-year walk.

Architecture position:
    Engines -- pure data structure, zero I/O.  Services build a
    ``LineSnapshot`` once per repository ``lines_revision()`` and reuse it
    across ``compute_all`` / ``recompute`` / evidence calls.

Invariants enforced:
    - ``select`` returns exactly the lines ``matcher.select_lines`` would
      return for the same arguments, in the same (ingestion) order.
    - Lookups with a missing entity or period fall back to a linear scan.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from prepaid_engines.matcher import distinct_accounts, matches, select_lines
from prepaid_kernel.domain.lines import (
    MatchableLine,
    ScheduleLine,
    TrialBalanceLine,
    WorkingLine,
)
from prepaid_kernel.domain.values import LineKey, norm

L = TypeVar("L", bound=MatchableLine)


class LineIndex(Generic[L]):
    """Immutable index over a snapshot of lines."""

    def __init__(self, lines: Iterable[L]):
        self._lines: tuple[L, ...] = tuple(lines)
        by_key: dict[LineKey, list[L]] = defaultdict(list)
        by_entity_period: dict[tuple[str, str], list[L]] = defaultdict(list)
        by_entity_account: dict[tuple[str, str], list[L]] = defaultdict(list)
        for line in self._lines:
            key = LineKey.of(line.entity_id, line.period_id, line.account)
            by_key[key].append(line)
            by_entity_period[(key.entity_id, key.period_id)].append(line)
            by_entity_account[(key.entity_id, key.account)].append(line)
        self._by_key = {k: tuple(v) for k, v in by_key.items()}
        self._by_entity_period = {k: tuple(v) for k, v in by_entity_period.items()}
        self._by_entity_account = {k: tuple(v) for k, v in by_entity_account.items()}

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines)

    @property
    def lines(self) -> tuple[L, ...]:
        return self._lines

    def _candidates(self, entity_id: Any, period_id: Any, account: Any) -> Sequence[L]:
        entity, period = norm(entity_id), norm(period_id)
        if not entity or not period:
            return self._lines
        if account is None:
            return self._by_entity_period.get((entity, period), ())
        return self._by_key.get(LineKey.of(entity, period, account), ())

    def select(
        self,
        entity_id: Any = None,
        period_id: Any = None,
        fiscal_year: Any = None,
        account: Any = None,
    ) -> list[L]:
        """Matching lines in ingestion order; ``account=None`` means any account."""
        candidates = self._candidates(entity_id, period_id, account)
        if candidates is self._lines:
            return select_lines(candidates, entity_id, period_id, fiscal_year, account)
        return [line for line in candidates if matches(line, fiscal_year=fiscal_year)]

    def first(
        self,
        entity_id: Any = None,
        period_id: Any = None,
        fiscal_year: Any = None,
        account: Any = None,
    ) -> L | None:
        """First matching line in ingestion order, or None."""
        for line in self._candidates(entity_id, period_id, account):
            if matches(line, entity_id, period_id, fiscal_year) and (
                account is None or norm(line.account) == norm(account)
            ):
                return line
        return None

    def by_entity_account(self, entity_id: Any, account: Any) -> tuple[L, ...]:
        """Every line for (entity, account) across all periods and years."""
        return self._by_entity_account.get((norm(entity_id), norm(account)), ())

    def accounts_for(
        self, entity_id: Any = None, period_id: Any = None, fiscal_year: Any = None,
    ) -> list[str]:
        return distinct_accounts(
            self._candidates(entity_id, period_id, None), entity_id, period_id, fiscal_year,
        )


@dataclass(frozen=True)
class LineSnapshot:
    """Indexes over all three line collections at one store revision."""

    revision: int
    schedule: LineIndex[ScheduleLine]
    trial_balance: LineIndex[TrialBalanceLine]
    working: LineIndex[WorkingLine]

    @classmethod
    def build(
        cls,
        revision: int,
        schedule_lines: Iterable[ScheduleLine],
        trial_balance_lines: Iterable[TrialBalanceLine],
        working_lines: Iterable[WorkingLine],
    ) -> LineSnapshot:
        return cls(
            revision=revision,
            schedule=LineIndex(schedule_lines),
            trial_balance=LineIndex(trial_balance_lines),
            working=LineIndex(working_lines),
        )

    def accounts_for(
        self, entity_id: Any = None, period_id: Any = None, fiscal_year: Any = None,
    ) -> list[str]:
        """Union of accounts across PPREC, schedule and TB, first-seen order."""
        seen: dict[str, None] = {}
        for index in (self.working, self.schedule, self.trial_balance):
            for account in index.accounts_for(entity_id, period_id, fiscal_year):
                seen.setdefault(account, None)
        return list(seen)
