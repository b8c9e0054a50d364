"""
Value helpers (``prepaid_kernel.domain.values``).

Responsibility:
    Numeric coercion with an explicit "unknown vs. known zero" split, the
    trimmed-string identity used to compare entity/period/account ids, and
    the typed composite key that line collections are indexed by.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Accumulations (``to_decimal``) treat None, blank and non-numeric
      input as ``Decimal("0")``.
    - Balances (``to_decimal_or_none``) keep None for absent input:
      None means "unknown", 0 means "known zero".
    - Money is always ``Decimal`` -- floats are converted through ``str``.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple

ZERO = Decimal("0")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_YEAR_MONTH = re.compile(r"^(\d{4})[-_](\d{1,2})$")
_YEAR = re.compile(r"^\d{4}$")
_MONTH = re.compile(r"^\d{1,2}$")


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        candidate = value
    elif isinstance(value, int):
        candidate = Decimal(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            candidate = Decimal(text)
        except InvalidOperation:
            return None
    if not candidate.is_finite():
        return None
    return candidate


def to_decimal(value: Any) -> Decimal:
    """Coerce an accumulation input to Decimal; absent or junk input is 0."""
    parsed = _parse_decimal(value)
    return parsed if parsed is not None else ZERO


def to_decimal_or_none(value: Any) -> Decimal | None:
    """Coerce a balance input to Decimal, keeping None for unknown."""
    return _parse_decimal(value)


def norm(value: Any) -> str:
    """Trimmed string form used for every identifier comparison."""
    if value is None:
        return ""
    return str(value).strip()


def same_id(left: Any, right: Any) -> bool:
    """True when two identifiers are equal after trimming."""
    return norm(left) == norm(right)


def parse_ymd(value: Any) -> date | None:
    """Parse a date, ISO date string or ISO datetime string; None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    match = _ISO_DATE.match(text)
    if match:
        try:
            return date(int(match[1]), int(match[2]), int(match[3]))
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def last_day_of(year: int, month: int) -> date | None:
    """Last calendar day of (year, month), or None for an invalid month."""
    if not 1 <= month <= 12:
        return None
    return date(year, month, calendar.monthrange(year, month)[1])


def report_date_from_code(code: Any) -> date | None:
    """Derive a report date from a ``YYYY_MM`` / ``YYYY-MM`` period code."""
    text = re.sub(r"\s+", "_", norm(code))
    match = _YEAR_MONTH.match(text)
    if not match:
        return None
    return last_day_of(int(match[1]), int(match[2]))


def report_date_from_fiscal(fiscal_year: Any, fiscal_period: Any) -> date | None:
    """Derive a report date from a numeric (fiscal year, fiscal period) pair."""
    year, period = norm(fiscal_year), norm(fiscal_period)
    if _YEAR.match(year) and _MONTH.match(period):
        return last_day_of(int(year), int(period))
    return None


class LineKey(NamedTuple):
    """Composite key every line collection is indexed by."""

    entity_id: str
    period_id: str
    account: str

    @classmethod
    def of(cls, entity_id: Any, period_id: Any, account: Any) -> LineKey:
        return cls(norm(entity_id), norm(period_id), norm(account))


class TripleKey(NamedTuple):
    """(entity, period, prepaid account) -- the unit a reconciliation covers."""

    entity_id: str
    period_id: str
    prepaid_account: str

    @classmethod
    def of(cls, entity_id: Any, period_id: Any, prepaid_account: Any) -> TripleKey:
        return cls(norm(entity_id), norm(period_id), norm(prepaid_account))


def decimal_str(value: Decimal | None) -> str | None:
    """JSON-safe string form of an optional Decimal."""
    return None if value is None else str(value)
