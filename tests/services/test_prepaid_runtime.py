"""
Start-up wiring: the YAML configuration drives the services and the log level.
"""

import json
import logging
from io import StringIO

import pytest

from prepaid_config import get_active_config
from prepaid_kernel.logging_config import configure_logging, get_logger, reset_logging
from prepaid_services import ReconciliationService, configure_runtime


@pytest.fixture
def fresh_logging():
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


def test_log_level_taken_from_config(tmp_path, fresh_logging):
    path = tmp_path / "recon.yaml"
    path.write_text("config_id: quiet\nlog_level: warning\n")
    stream = StringIO()

    config = configure_runtime(path, stream=stream)
    get_logger("test").info("hidden")
    get_logger("test").warning("shown")

    assert config.config_id == "quiet"
    assert logging.getLogger("prepaid_kernel").level == logging.WARNING
    messages = [json.loads(line)["message"] for line in stream.getvalue().splitlines()]
    assert messages == ["shown"]


def test_bundled_config_level(fresh_logging):
    config = configure_runtime(stream=StringIO())
    assert config.log_level == "INFO"
    assert logging.getLogger("prepaid_kernel").level == logging.INFO


def test_service_defaults_to_active_config(repository, captured_logs):
    service = ReconciliationService(repository)

    assert service.config == get_active_config()
    loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
    assert loaded
