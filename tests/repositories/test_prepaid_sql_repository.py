"""
SqlAlchemyRepository against SQLite in-memory.

Covers:
- Line round-trips in ingestion order and the revision counter
- Reference data lookups
- Reconciliation insert / compare-and-swap replace / live-triple uniqueness
- Adjustment status compare-and-swap and the ordered approval trail
- The services running end to end over the SQL store
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from prepaid_kernel.domain.adjustment import (
    AdjustmentProposal,
    AdjustmentStatus,
    ApprovalAction,
)
from prepaid_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from prepaid_kernel.domain.clock import DeterministicClock
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import ReconciliationStatus
from prepaid_kernel.domain.reference import FiscalPeriod, ToleranceSetting
from prepaid_kernel.exceptions import (
    AdjustmentNotPendingError,
    OptimisticLockError,
    ReconciliationNotFoundError,
)
from prepaid_kernel.repositories.sql import SqlAlchemyRepository
from prepaid_services import (
    AdjustmentWorkflow,
    InMemoryAuditSink,
    ReconciliationService,
)


@pytest.fixture
def sql_repo(sql_session):
    return SqlAlchemyRepository(sql_session)


@pytest.fixture
def sql_services(sql_repo):
    recon = ReconciliationService(
        sql_repo, clock=DeterministicClock(), audit_sink=InMemoryAuditSink(),
    )
    return recon, AdjustmentWorkflow(sql_repo, recon)


@pytest.fixture
def loaded(sql_repo):
    sql_repo.add_working_lines([
        WorkingLine("E1", "2024", "2024_12", "1400",
                    opening_balance=Decimal("1000"), additions=Decimal("500"),
                    amortization=Decimal("300")),
        WorkingLine("E1", "2023", "2023_12", "1400", additions=Decimal("1000")),
    ])
    sql_repo.add_schedule_lines([
        ScheduleLine("E1", "2024", "2024_12", "1400", credit_amount=Decimal("300"),
                     apply_date="2024-06-30", prepaid_start_year="2023"),
    ])
    sql_repo.add_trial_balance_lines([
        TrialBalanceLine("E1", "2024", "2024_12", "1400",
                         closing_balance_signed=Decimal("1150")),
    ])
    sql_repo.add_period(FiscalPeriod(id="2024_12", code="2024_12", end_date=date(2024, 12, 31)))
    return sql_repo


class TestLines:

    def test_round_trip_preserves_order_and_values(self, sql_repo):
        first = WorkingLine("E1", "2024", "2024_12", "1400", additions=Decimal("1.5"))
        second = WorkingLine("E1", "2024", "2024_11", "1400", amortization=None)
        sql_repo.add_working_lines([first, second])

        stored = sql_repo.working_lines()
        assert [l.id for l in stored] == [first.id, second.id]
        assert stored[0].additions == Decimal("1.5")
        assert stored[1].amortization is None

    def test_closing_balance_none_survives(self, sql_repo):
        sql_repo.add_trial_balance_lines([
            TrialBalanceLine("E1", "2024", "2024_12", "1400", closing_balance_signed=None),
        ])
        assert sql_repo.trial_balance_lines()[0].closing_balance_signed is None

    def test_revision_moves_on_add(self, sql_repo):
        before = sql_repo.lines_revision()
        sql_repo.add_schedule_lines([ScheduleLine("E1", "2024", "2024_12", "1400")])
        assert sql_repo.lines_revision() > before
        sql_repo.add_schedule_lines([])
        assert sql_repo.lines_revision() == before + 1


class TestReference:

    def test_period_lookup_trimmed(self, loaded):
        period = loaded.get_period(" 2024_12 ")
        assert period.end_date == date(2024, 12, 31)
        assert loaded.get_period("2030_01") is None

    def test_tolerance_settings(self, sql_repo):
        sql_repo.add_tolerance_setting(ToleranceSetting(amount=Decimal("2.5"), entity_id="E1"))
        settings = sql_repo.tolerance_settings()
        assert len(settings) == 1
        assert settings[0].amount == Decimal("2.5")
        assert settings[0].period_id is None


class TestReconciliations:

    def test_compute_round_trip(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        stored = loaded.get_reconciliation(record.id)

        assert stored.total_subsystem == Decimal("1200")
        assert stored.gl_balance == Decimal("1150")
        assert stored.difference == Decimal("50")
        assert stored.status == ReconciliationStatus.OPEN
        assert stored.begin_in(2023) == Decimal("700")
        assert stored.created_at == record.created_at
        assert stored.created_at.tzinfo is not None
        assert loaded.find_reconciliation(" E1", "2024_12", "1400 ").id == record.id

    def test_replace_requires_expected_version(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        with pytest.raises(OptimisticLockError):
            loaded.replace_reconciliation(
                record, expected_version=record.version + 1, expected_status=record.status,
            )

    def test_replace_requires_expected_status(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        with pytest.raises(OptimisticLockError):
            loaded.replace_reconciliation(
                record, expected_version=record.version,
                expected_status=ReconciliationStatus.CLOSED,
            )

    def test_replace_unknown_record(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        with pytest.raises(ReconciliationNotFoundError):
            loaded.replace_reconciliation(
                replace(record, id=uuid4()), expected_version=1,
                expected_status=record.status,
            )

    def test_second_live_record_for_triple_rejected(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        with pytest.raises(OptimisticLockError):
            loaded.insert_reconciliation(replace(record, id=uuid4()))
        # Savepoint rolled back; the session is still usable
        assert loaded.get_reconciliation(record.id) is not None

    def test_soft_deleted_frees_the_triple(self, loaded, sql_services):
        recon, _ = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        recon.soft_delete(record.id, "admin")

        assert loaded.list_reconciliations() == ()
        fresh = recon.compute_one("E1", "2024", "2024_12", "1400")
        assert fresh.id != record.id
        assert loaded.get_reconciliation(record.id).is_deleted


class TestAdjustments:

    def test_worked_example_over_sql(self, loaded, sql_services):
        recon, workflow = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        entry = workflow.propose(AdjustmentProposal(
            reconciliation_id=record.id, explanation="Missed accrual",
            debit_account="1400", credit_account="6100", amount="50",
        ), "maker-1")

        assert loaded.get_reconciliation(record.id).status == ReconciliationStatus.PENDING_CHECKER

        workflow.approve(entry.id, "checker-1", "ok")
        closed = loaded.get_reconciliation(record.id)
        assert closed.recon_entries == Decimal("50")
        assert closed.final_difference == Decimal("0")
        assert closed.status == ReconciliationStatus.CLOSED
        assert closed.version == 2

        events = loaded.approval_events(entry.id)
        assert [e.action for e in events] == [ApprovalAction.PROPOSED, ApprovalAction.APPROVED]

    def test_transition_is_compare_and_swap(self, loaded, sql_services):
        recon, workflow = sql_services
        record = recon.compute_one("E1", "2024", "2024_12", "1400")
        entry = workflow.propose(AdjustmentProposal(
            reconciliation_id=record.id, explanation="x", amount="1",
        ), "maker-1")
        workflow.reject(entry.id, "checker-1", "no")

        stale = entry.decided(AdjustmentStatus.APPROVED, "checker-2", None, entry.created_at)
        with pytest.raises(AdjustmentNotPendingError) as exc_info:
            loaded.transition_adjustment(stale, expected_status=AdjustmentStatus.PENDING_APPROVAL)
        assert exc_info.value.current_status == "REJECTED"
        assert loaded.get_adjustment(entry.id).status == AdjustmentStatus.REJECTED


class TestSessionScope:

    @pytest.fixture
    def sqlite_engine(self):
        reset_engine()
        init_engine_from_url("sqlite://")
        create_tables()
        yield
        reset_engine()

    def _period_exists(self, period_id):
        session = get_session()
        try:
            return SqlAlchemyRepository(session).get_period(period_id) is not None
        finally:
            session.close()

    def test_commits_on_success(self, sqlite_engine):
        with session_scope() as session:
            SqlAlchemyRepository(session).add_period(FiscalPeriod(id="2024_12", code="2024_12"))
        assert self._period_exists("2024_12")

    def test_rolls_back_on_error(self, sqlite_engine):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                SqlAlchemyRepository(session).add_period(FiscalPeriod(id="2024_11"))
                raise RuntimeError("abort")
        assert not self._period_exists("2024_11")
