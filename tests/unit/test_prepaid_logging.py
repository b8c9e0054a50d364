"""Tests for the structured logging system (prepaid_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from prepaid_kernel.exceptions import SelfApprovalError
from prepaid_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state around each test, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "prepaid_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_value_types(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        rid = uuid4()
        get_logger("test").info("computed", extra={
            "reconciliation_id": rid,
            "final_difference": Decimal("12.50"),
            "at": datetime(2024, 12, 31, tzinfo=UTC),
        })

        record = _parse_all_logs(stream)[0]
        assert record["reconciliation_id"] == str(rid)
        assert record["final_difference"] == "12.50"
        assert record["at"] == "2024-12-31T00:00:00+00:00"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(actor_id="maker-1", entity_id="E1"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["actor_id"] == "maker-1"
        assert inside["entity_id"] == "E1"
        assert "actor_id" not in outside

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        adjustment_id = uuid4()
        try:
            raise SelfApprovalError(str(adjustment_id), "maker-1")
        except SelfApprovalError:
            get_logger("test").exception("denied")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "SelfApprovalError"
        assert record["exc_code"] == "SELF_APPROVAL"
        assert record["exc_actor_id"] == "maker-1"
        assert record["exc_adjustment_id"] == str(adjustment_id)
        assert "Traceback" in record["traceback"]


class TestLogContext:

    def test_set_and_clear(self):
        LogContext.set(correlation_id="c-1", period_id="2024_12")
        assert LogContext.get_all() == {"correlation_id": "c-1", "period_id": "2024_12"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_set_is_additive(self):
        LogContext.set(actor_id="a")
        LogContext.set(entity_id="E1")
        assert LogContext.get_all() == {"actor_id": "a", "entity_id": "E1"}

    def test_bind_restores_previous_value(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", adjustment_id=uuid4()):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all() == {"actor_id": "outer"}

    def test_bind_ignores_none_and_unknown_fields(self):
        with LogContext.bind(actor_id=None, colour="blue"):
            assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("prepaid_kernel").handlers
        assert first in handlers
        assert second not in handlers

    def test_level_applied(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_get_logger_returns_child(self):
        assert get_logger("services.recon").name == "prepaid_kernel.services.recon"
