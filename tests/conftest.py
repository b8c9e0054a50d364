"""
Pytest fixtures for the prepaid reconciliation test suite.

Provides:
- Structured log capture
- Deterministic clock, in-memory repository and wired services
- The worked example data set (entity E1, period 2024_12, account 1400)
- SQLite in-memory SQLAlchemy sessions for repository tests
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace

import pytest

from prepaid_config.schema import ReconConfig
from prepaid_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from prepaid_kernel.domain.clock import DeterministicClock
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reference import FiscalPeriod
from prepaid_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from prepaid_kernel.repositories.memory import InMemoryRepository
from prepaid_services import (
    AdjustmentWorkflow,
    EvidenceService,
    InMemoryAuditSink,
    ReconciliationService,
)

ENTITY = "E1"
PERIOD = "2024_12"
FISCAL_YEAR = "2024"
PREPAID = "1400"
EXPENSE = "6100"
MAKER = "maker-1"
CHECKER = "checker-1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture prepaid_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, recon_service):
            recon_service.compute_one(...)
            logs = captured_logs()
            assert any(r["message"] == "reconciliation_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("prepaid_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Core wiring
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def config():
    return ReconConfig()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def recon_service(repository, config, deterministic_clock, audit_sink):
    return ReconciliationService(
        repository,
        config=config,
        clock=deterministic_clock,
        audit_sink=audit_sink,
    )


@pytest.fixture
def workflow(repository, recon_service):
    return AdjustmentWorkflow(repository, recon_service)


@pytest.fixture
def evidence_service(repository, recon_service):
    return EvidenceService(repository, recon_service)


# =============================================================================
# Data
# =============================================================================


def worked_example_lines():
    """
    Lines for the canonical example.

    PPREC 2024_12: opening 1000, additions 500, amortization 300 -> expected 1200.
    Begin-in-year: 2023 = 1000 booked - 300 amortized = 700; 2024 = 500.
    Total Subsystem 1200, TB closing 1150, difference 50.
    """
    working = [
        WorkingLine(
            entity_id=ENTITY, fiscal_year="2024", period_id=PERIOD,
            prepaid_account=PREPAID,
            opening_balance=Decimal("1000"), additions=Decimal("500"),
            amortization=Decimal("300"),
        ),
        WorkingLine(
            entity_id=ENTITY, fiscal_year="2023", period_id="2023_12",
            prepaid_account=PREPAID, additions=Decimal("1000"),
        ),
    ]
    schedule = [
        ScheduleLine(
            entity_id=ENTITY, fiscal_year="2024", period_id=PERIOD,
            account=PREPAID, credit_amount=Decimal("300"),
            apply_date="2024-06-30", expense_account=EXPENSE,
            prepaid_start_year="2023", description="Insurance 2023 policy",
        ),
    ]
    tb = [
        TrialBalanceLine(
            entity_id=ENTITY, fiscal_year="2024", period_id=PERIOD,
            account=PREPAID, closing_balance_signed=Decimal("1150"),
        ),
    ]
    return working, schedule, tb


@pytest.fixture
def worked_example(repository):
    """Load the worked example into the in-memory repository."""
    working, schedule, tb = worked_example_lines()
    repository.add_working_lines(working)
    repository.add_schedule_lines(schedule)
    repository.add_trial_balance_lines(tb)
    repository.add_period(FiscalPeriod(
        id=PERIOD, code=PERIOD, name="December 2024",
        start_date=date(2024, 12, 1), end_date=date(2024, 12, 31),
    ))
    return SimpleNamespace(
        entity_id=ENTITY,
        period_id=PERIOD,
        fiscal_year=FISCAL_YEAR,
        prepaid_account=PREPAID,
        expense_account=EXPENSE,
        working=working,
        schedule=schedule,
        trial_balance=tb,
    )


@pytest.fixture
def open_record(recon_service, worked_example):
    """The worked example computed once: difference 50, status OPEN."""
    return recon_service.compute_one(
        worked_example.entity_id,
        worked_example.fiscal_year,
        worked_example.period_id,
        worked_example.prepaid_account,
    )


# =============================================================================
# SQLAlchemy
# =============================================================================


@pytest.fixture
def sql_session():
    """Fresh SQLite in-memory database per test."""
    reset_engine()
    init_engine_from_url("sqlite://")
    create_tables()
    session = get_session()
    yield session
    session.close()
    reset_engine()
