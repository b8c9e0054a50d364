"""
ReconConfig schema.

The runtime configuration of the reconciliation core.  YAML is parsed into
this frozen dataclass by ``prepaid_config.loader``; services receive it
through ``get_active_config()`` or as an injected argument in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_DASHBOARD_YEARS: tuple[int, ...] = (2021, 2022, 2023, 2024, 2025)
DASHBOARD_YEAR_COUNT = 5
LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class ReconConfig:
    """Validated reconciliation settings.

    Raises:
        ValueError: from ``__post_init__`` on any invalid field.
    """

    config_id: str = "prepaid-default"
    version: int = 1
    dashboard_years: tuple[int, ...] = DEFAULT_DASHBOARD_YEARS
    default_tolerance: Decimal = Decimal("0")
    max_recompute_attempts: int = 3
    log_level: str = "INFO"
    checksum: str = ""

    def __post_init__(self) -> None:
        years = self.dashboard_years
        if len(years) != DASHBOARD_YEAR_COUNT:
            raise ValueError(
                f"dashboard_years must list {DASHBOARD_YEAR_COUNT} years, got {len(years)}"
            )
        if any(isinstance(y, bool) or not isinstance(y, int) for y in years):
            raise ValueError(f"dashboard_years must be integers: {years!r}")
        if len(set(years)) != len(years):
            raise ValueError(f"dashboard_years must be distinct: {years!r}")
        if not isinstance(self.default_tolerance, Decimal) or not self.default_tolerance.is_finite():
            raise ValueError(f"default_tolerance must be a finite Decimal: {self.default_tolerance!r}")
        if self.default_tolerance < 0:
            raise ValueError(f"default_tolerance must be >= 0: {self.default_tolerance}")
        if isinstance(self.max_recompute_attempts, bool) or self.max_recompute_attempts < 1:
            raise ValueError(
                f"max_recompute_attempts must be >= 1: {self.max_recompute_attempts!r}"
            )
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}: {self.log_level!r}")
