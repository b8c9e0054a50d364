"""
Tests for ReconciliationService.

Covers:
- compute_one insert then replace (id, createdAt preserved; version bumped)
- Idempotent recompute
- Edge cases: no TB line, schedule/TB only, blank account
- compute_all account discovery and record reuse
- Queries, soft delete, structured logs and audit records
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from prepaid_config.schema import ReconConfig
from prepaid_kernel.domain.lines import ScheduleLine, TrialBalanceLine, WorkingLine
from prepaid_kernel.domain.reconciliation import ReconciliationStatus
from prepaid_kernel.domain.reference import ToleranceSetting
from prepaid_kernel.exceptions import OptimisticLockError, ReconciliationNotFoundError
from prepaid_kernel.logging_config import LogContext
from prepaid_services import InMemoryAuditSink, ReconciliationService
from prepaid_services.audit import AuditAction


def _compute(service, ex, account=None):
    return service.compute_one(
        ex.entity_id, ex.fiscal_year, ex.period_id, account or ex.prepaid_account,
    )


class TestComputeOne:

    def test_worked_example_figures(self, open_record):
        assert open_record.opening_balance == Decimal("1000")
        assert open_record.additions == Decimal("500")
        assert open_record.amortization == Decimal("300")
        assert open_record.expected_closing == Decimal("1200")
        assert open_record.total_subsystem == Decimal("1200")
        assert open_record.gl_balance == Decimal("1150")
        assert open_record.difference == Decimal("50")
        assert open_record.recon_entries == Decimal("0")
        assert open_record.final_difference == Decimal("50")
        assert open_record.status == ReconciliationStatus.OPEN
        assert open_record.version == 1
        assert open_record.begin_in(2023) == Decimal("700")
        assert open_record.begin_in(2024) == Decimal("500")
        assert open_record.begin_in(2019) == Decimal("0")

    def test_record_persisted(self, repository, open_record):
        assert repository.get_reconciliation(open_record.id) == open_record

    def test_recompute_replaces_in_place(
        self, recon_service, repository, worked_example, open_record, deterministic_clock,
    ):
        deterministic_clock.advance(60)
        again = _compute(recon_service, worked_example)

        assert again.id == open_record.id
        assert again.created_at == open_record.created_at
        assert again.updated_at > open_record.updated_at
        assert again.version == 2
        assert len(repository.list_reconciliations()) == 1

    def test_recompute_idempotent_except_version_and_updated_at(
        self, recon_service, worked_example, open_record, deterministic_clock,
    ):
        deterministic_clock.advance(1)
        first = _compute(recon_service, worked_example)
        deterministic_clock.advance(1)
        second = _compute(recon_service, worked_example)

        strip = lambda r: {
            k: v for k, v in r.to_dict().items() if k not in ("version", "updatedAt")
        }
        assert strip(first) == strip(second)
        assert second.version == first.version + 1

    def test_identifiers_trimmed(self, recon_service, worked_example):
        record = recon_service.compute_one(" E1 ", "2024", "2024_12 ", " 1400")
        assert (record.entity_id, record.period_id, record.prepaid_account) == (
            "E1", "2024_12", "1400",
        )

    def test_no_tb_line(self, recon_service, repository):
        repository.add_working_lines([
            WorkingLine("E1", "2024", "2024_12", "1400",
                        opening_balance=Decimal("10"), additions=Decimal("5"),
                        amortization=Decimal("1")),
        ])
        record = recon_service.compute_one("E1", "2024", "2024_12", "1400")

        assert record.gl_balance is None
        assert record.difference is None
        assert record.final_difference is None
        assert record.status == ReconciliationStatus.OPEN

    def test_schedule_and_tb_only(self, recon_service, repository):
        repository.add_schedule_lines([
            ScheduleLine("E1", "2024", "2024_12", "1400", credit_amount=Decimal("25"),
                         apply_date="2024-12-15"),
        ])
        repository.add_trial_balance_lines([
            TrialBalanceLine("E1", "2024", "2024_12", "1400",
                             closing_balance_signed=Decimal("-25")),
        ])
        record = recon_service.compute_one("E1", "2024", "2024_12", "1400")

        assert record.opening_balance == Decimal("0")
        assert record.additions == Decimal("0")
        assert record.amortization == Decimal("25")
        assert record.total_subsystem == Decimal("-25")
        assert record.difference == Decimal("0")
        assert record.status == ReconciliationStatus.CLOSED

    def test_tolerance_setting_closes(self, recon_service, repository, worked_example):
        repository.add_tolerance_setting(
            ToleranceSetting(amount=Decimal("50"), entity_id="E1", period_id="2024_12"),
        )
        record = _compute(recon_service, worked_example)
        assert record.tolerance_used == Decimal("50")
        assert record.status == ReconciliationStatus.CLOSED

    def test_config_default_tolerance(self, repository, worked_example, deterministic_clock):
        service = ReconciliationService(
            repository,
            config=ReconConfig(default_tolerance=Decimal("75")),
            clock=deterministic_clock,
            audit_sink=InMemoryAuditSink(),
        )
        record = _compute(service, worked_example)
        assert record.tolerance_used == Decimal("75")
        assert record.status == ReconciliationStatus.CLOSED

    def test_new_lines_picked_up(self, recon_service, repository, worked_example, open_record):
        repository.add_trial_balance_lines([
            TrialBalanceLine("E1", "2024", "2024_12", "1400",
                             closing_balance_signed=Decimal("0")),
        ])
        # First matching TB line still wins
        assert _compute(recon_service, worked_example).gl_balance == Decimal("1150")
        repository.add_working_lines([
            WorkingLine("E1", "2022", "2022_12", "1400", additions=Decimal("10")),
        ])
        assert _compute(recon_service, worked_example).total_subsystem == Decimal("1210")

    def test_lost_cas_is_retried(self, recon_service, repository, worked_example, open_record):
        calls = {"n": 0}
        original = repository.replace_reconciliation

        def flaky(record, expected_version, expected_status):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OptimisticLockError("Reconciliation", str(record.id), expected_version)
            return original(record, expected_version, expected_status)

        repository.replace_reconciliation = flaky
        record = _compute(recon_service, worked_example)
        assert calls["n"] == 2
        assert record.version == 2

    def test_cas_gives_up_after_max_attempts(self, recon_service, repository, worked_example, open_record):
        def always_conflict(record, expected_version, expected_status):
            raise OptimisticLockError("Reconciliation", str(record.id), expected_version)

        repository.replace_reconciliation = always_conflict
        with pytest.raises(OptimisticLockError):
            _compute(recon_service, worked_example)


class TestComputeAll:

    def test_discovers_accounts_across_line_kinds(self, recon_service, repository, worked_example):
        repository.add_schedule_lines([
            ScheduleLine("E1", "2024", "2024_12", "1410", credit_amount=Decimal("5")),
        ])
        repository.add_trial_balance_lines([
            TrialBalanceLine("E1", "2024", "2024_12", "1420",
                             closing_balance_signed=Decimal("7")),
            TrialBalanceLine("E2", "2024", "2024_12", "1430",
                             closing_balance_signed=Decimal("7")),
        ])
        records = recon_service.compute_all("E1", "2024", "2024_12")
        assert sorted(r.prepaid_account for r in records) == ["1400", "1410", "1420"]

    def test_reuses_existing_records(self, recon_service, worked_example, open_record):
        records = recon_service.compute_all("E1", "2024", "2024_12")
        assert [r.id for r in records] == [open_record.id]
        assert records[0].version == 2

    def test_empty_when_no_lines(self, recon_service):
        assert recon_service.compute_all("E1", "2024", "2024_12") == []

    def test_logs_batch(self, recon_service, worked_example, captured_logs):
        recon_service.compute_all("E1", "2024", "2024_12")
        batch = [r for r in captured_logs() if r["message"] == "reconciliation_batch_completed"]
        assert batch[0]["account_count"] == 1


class TestRecompute:

    def test_recompute_existing(self, recon_service, open_record):
        again = recon_service.recompute(open_record.id)
        assert again.id == open_record.id
        assert again.version == 2

    def test_recompute_missing_returns_none(self, recon_service):
        assert recon_service.recompute(uuid4()) is None

    def test_recompute_deleted_returns_none(self, recon_service, open_record):
        recon_service.soft_delete(open_record.id, "admin")
        assert recon_service.recompute(open_record.id) is None


class TestQueries:

    def test_get(self, recon_service, open_record):
        assert recon_service.get(open_record.id) == open_record
        assert recon_service.get(uuid4()) is None

    def test_get_with_evidence(self, recon_service, open_record):
        record, evidence = recon_service.get_with_evidence(open_record.id)
        assert record == open_record
        assert evidence.reconciliation_id == open_record.id

    def test_get_with_evidence_missing(self, recon_service):
        assert recon_service.get_with_evidence(uuid4()) is None

    def test_list_filters(self, recon_service, repository, worked_example, open_record):
        repository.add_trial_balance_lines([
            TrialBalanceLine("E2", "2024", "2024_12", "1400",
                             closing_balance_signed=Decimal("0")),
        ])
        other = recon_service.compute_one("E2", "2024", "2024_12", "1400")

        assert len(recon_service.list_reconciliations()) == 2
        assert recon_service.list_reconciliations(entity_id="E1") == [open_record]
        assert recon_service.list_reconciliations(status="CLOSED") == [other]
        assert recon_service.list_reconciliations(
            status=ReconciliationStatus.OPEN, fiscal_year=2024,
        ) == [open_record]
        assert recon_service.list_reconciliations(prepaid_account="9999") == []
        assert recon_service.list_reconciliations(entity_scope=["E2"]) == [other]
        assert recon_service.list_reconciliations(entity_scope=[]) == []

    def test_soft_delete(self, recon_service, repository, open_record, audit_sink):
        deleted = recon_service.soft_delete(open_record.id, "admin")

        assert deleted.deleted_at is not None
        assert recon_service.get(open_record.id) is None
        assert recon_service.list_reconciliations() == []
        assert repository.get_reconciliation(open_record.id).is_deleted
        assert audit_sink.actions()[-1] == AuditAction.RECONCILIATION_DELETED

    def test_soft_delete_twice_raises(self, recon_service, open_record):
        recon_service.soft_delete(open_record.id, "admin")
        with pytest.raises(ReconciliationNotFoundError):
            recon_service.soft_delete(open_record.id, "admin")

    def test_compute_after_delete_creates_new_record(
        self, recon_service, worked_example, open_record,
    ):
        recon_service.soft_delete(open_record.id, "admin")
        fresh = _compute(recon_service, worked_example)
        assert fresh.id != open_record.id
        assert fresh.version == 1


class TestObservability:

    def test_computed_log_line(self, recon_service, worked_example, captured_logs):
        record = _compute(recon_service, worked_example)
        logs = [r for r in captured_logs() if r["message"] == "reconciliation_computed"]
        assert logs[-1]["reconciliation_id"] == str(record.id)
        assert logs[-1]["final_difference"] == "50"
        assert logs[-1]["recon_status"] == "OPEN"
        assert logs[-1]["is_new"] is True

    def test_divergence_logged(self, recon_service, repository, captured_logs):
        repository.add_working_lines([
            WorkingLine("E1", "2024", "2024_12", "1400",
                        opening_balance=Decimal("800"), additions=Decimal("500"),
                        amortization=Decimal("300")),
        ])
        recon_service.compute_one("E1", "2024", "2024_12", "1400")
        warnings = [
            r for r in captured_logs()
            if r["message"] == "subsystem_expected_closing_divergence"
        ]
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["expected_closing"] == "1000"

    def test_audit_actions(self, recon_service, worked_example, audit_sink):
        _compute(recon_service, worked_example)
        _compute(recon_service, worked_example)
        assert audit_sink.actions() == [
            AuditAction.RECONCILIATION_CREATED,
            AuditAction.RECONCILIATION_RECOMPUTED,
        ]
        assert audit_sink.records[0].actor_id == "system"

    def test_default_sink_logs_audit_events(self, repository, worked_example, captured_logs):
        service = ReconciliationService(repository)
        with LogContext.bind(actor_id="batch-runner"):
            record = _compute(service, worked_example)

        events = [r for r in captured_logs() if r["message"] == "audit_event"]
        assert len(events) == 1
        assert events[0]["audit_action"] == "RECONCILIATION_CREATED"
        assert events[0]["audit_actor_id"] == "batch-runner"
        assert events[0]["resource_id"] == str(record.id)
        assert events[0]["audit_metadata"]["version"] == 1
