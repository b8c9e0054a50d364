"""
Configuration Loader (``prepaid_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a ``ReconConfig``.
Runtime callers go through ``prepaid_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from prepaid_config.schema import DEFAULT_DASHBOARD_YEARS, ReconConfig

_KNOWN_KEYS = frozenset({
    "config_id",
    "version",
    "dashboard_years",
    "default_tolerance",
    "max_recompute_attempts",
    "log_level",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_decimal(value: Any, field: str) -> Decimal:
    # Floats from YAML go through str so 0.01 stays 0.01
    if isinstance(value, bool):
        raise ValueError(f"{field}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field}: expected a number, got {value!r}") from None


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field}: expected an integer, got {value!r}")
    return value


def parse_config(data: dict[str, Any]) -> ReconConfig:
    """Parse a ``ReconConfig`` from a dict (as loaded from YAML)."""
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    years = data.get("dashboard_years", list(DEFAULT_DASHBOARD_YEARS))
    if not isinstance(years, list):
        raise ValueError(f"dashboard_years: expected a list, got {years!r}")

    return ReconConfig(
        config_id=str(data.get("config_id", "prepaid-default")),
        version=parse_int(data.get("version", 1), "version"),
        dashboard_years=tuple(parse_int(y, "dashboard_years") for y in years),
        default_tolerance=parse_decimal(data.get("default_tolerance", "0"), "default_tolerance"),
        max_recompute_attempts=parse_int(
            data.get("max_recompute_attempts", 3), "max_recompute_attempts",
        ),
        log_level=str(data.get("log_level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )
