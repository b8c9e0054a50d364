"""
prepaid_services.runtime -- process start-up wiring.

Loads the active ``ReconConfig`` and applies its ``log_level`` to the
``prepaid_kernel`` logger hierarchy.  Entry points (batch jobs, the HTTP
adapter) call ``configure_runtime()`` once and pass the returned config to
the services they build.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from prepaid_config import ReconConfig, get_active_config
from prepaid_kernel.logging_config import configure_logging


def configure_runtime(
    config_path: Path | str | None = None,
    stream: Any = None,
) -> ReconConfig:
    """Load configuration and configure structured logging from it."""
    config = get_active_config(config_path)
    configure_logging(level=getattr(logging, config.log_level), stream=stream)
    return config
