"""
prepaid_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    No other component reads configuration files or environment variables.

Architecture position:
    Configuration -- sits beside ``prepaid_kernel`` and below
    ``prepaid_services``.  The kernel and the engines never import it;
    services receive a ``ReconConfig`` value.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful call emits a ``config_loaded`` log entry carrying the
    source path, config id, version and checksum, tying each computed
    reconciliation back to the settings that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from prepaid_config.loader import load_yaml_file, parse_config
from prepaid_config.schema import ReconConfig

_logger = logging.getLogger("prepaid_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> ReconConfig:
    """Load, validate and return the active ``ReconConfig``.

    Args:
        config_path: YAML file to load.  Defaults to the bundled
            ``prepaid_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If any value fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "config_loaded",
        extra={
            "source": str(path),
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "dashboard_years": list(config.dashboard_years),
        },
    )
    return config


__all__ = ["ReconConfig", "get_active_config"]
