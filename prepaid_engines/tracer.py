"""
prepaid_engines.tracer -- Engine invocation tracer emitting PREPAID_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function with one structured trace
    record: engine name, engine version, a deterministic fingerprint of
    selected keyword inputs, and the duration in milliseconds.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never touches the database or the clock used
    for business timestamps.

Invariants enforced:
    - The fingerprint is deterministic: Decimals, UUIDs and dates are
      canonicalized through ``str``; dict keys are sorted.
    - The wrapped function's inputs and result pass through untouched.

Usage:
    @traced_engine("prepaid_formulas", "1.0", fingerprint_fields=("entity_id",))
    def compute_figures(*, entity_id, ...):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_logger = logging.getLogger("prepaid_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (str, int, Decimal, UUID, date)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """16-hex-char SHA-256 prefix over the named keyword inputs.

    Missing fields are recorded as ``null``.
    """
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits PREPAID_ENGINE_TRACE for each invocation."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.debug(
                "PREPAID_ENGINE_TRACE",
                extra={
                    "trace_type": "PREPAID_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
