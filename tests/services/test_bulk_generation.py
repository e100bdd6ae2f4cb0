"""
Tests for BulkPayrollGenerator.

Each employee is processed in its own transaction: one employee's failure
or fault never rolls back another's draft.
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from payroll_kernel.domain.dtos import EmploymentStatus, PayrollStatus
from payroll_kernel.models.payroll import Payroll
from payroll_services.bulk_generation import ALREADY_EXISTS_REASON, UNHANDLED_ERROR_CODE
from payroll_services.results import OperationStatus

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


def payroll_count(session) -> int:
    return session.execute(select(func.count()).select_from(Payroll)).scalar_one()


@pytest.fixture
def team(create_employee, create_department, engineer, kh_brackets):
    """A and C are payable; B has no position and so no basic salary."""
    department = create_department("Engineering")
    alice = create_employee("Alice", "Ang", position=engineer, department=department)
    bora = create_employee("Bora", "Keo", department=department)
    chan = create_employee("Chan", "Dara", position=engineer, department=department)
    return department, alice, bora, chan


class TestIsolation:
    def test_failure_does_not_affect_others(self, session, bulk_generator, team, test_actor_id):
        department, alice, bora, chan = team

        result = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        )

        assert result.is_success
        batch = result.value
        assert [p.employee_id for p in batch.generated] == [alice.id, chan.id]
        assert all(p.status == PayrollStatus.PENDING for p in batch.generated)
        assert batch.skipped == ()
        assert len(batch.failed) == 1
        failure = batch.failed[0]
        assert failure.employee_id == bora.id
        assert failure.employee_name == "Bora Keo"
        assert failure.error_code == "MISSING_BASIC_SALARY"
        assert payroll_count(session) == 2

    def test_unexpected_exception_recorded_as_failed(
        self, session, bulk_generator, lifecycle_service, team, test_actor_id, monkeypatch, captured_logs,
    ):
        department, alice, bora, chan = team
        original = lifecycle_service.create_draft

        def explode_for_alice(**kwargs):
            if kwargs["employee_id"] == alice.id:
                raise RuntimeError("pricing service unavailable")
            return original(**kwargs)

        monkeypatch.setattr(lifecycle_service, "create_draft", explode_for_alice)

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        assert [p.employee_id for p in batch.generated] == [chan.id]
        failed = {f.employee_id: f for f in batch.failed}
        assert failed[alice.id].error == "pricing service unavailable"
        assert failed[alice.id].error_code == UNHANDLED_ERROR_CODE
        assert failed[bora.id].error_code == "MISSING_BASIC_SALARY"
        assert payroll_count(session) == 1

        logged = [r for r in captured_logs() if r["message"] == "bulk_generation_employee_failed"]
        assert len(logged) == 1
        assert logged[0]["employee_id"] == str(alice.id)

    def test_persistence_fault_rolls_back_only_that_employee(
        self, session, bulk_generator, lifecycle_service, team, test_actor_id, monkeypatch,
    ):
        department, alice, bora, chan = team
        original = lifecycle_service._write_tax_calculation

        def fail_for_chan(payroll, breakdown, performed_by):
            if payroll.employee_id == chan.id:
                raise OperationalError("INSERT INTO tax_calculations", {}, Exception("deadlock detected"))
            return original(payroll, breakdown, performed_by)

        monkeypatch.setattr(lifecycle_service, "_write_tax_calculation", fail_for_chan)

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        assert batch.generated_ids == (batch.generated[0].id,)
        assert batch.generated[0].employee_id == alice.id
        codes = {f.employee_id: f.error_code for f in batch.failed}
        assert codes[chan.id] == "PAYROLL_PERSISTENCE_ERROR"
        assert payroll_count(session) == 1

    def test_raw_driver_error_gets_unhandled_code(
        self, bulk_generator, lifecycle_service, team, test_actor_id, monkeypatch,
    ):
        department, alice, bora, chan = team
        original = lifecycle_service._load_employee

        def fail_for_alice(employee_id):
            if employee_id == alice.id:
                raise OperationalError("SELECT employees", {}, Exception("server closed the connection"))
            return original(employee_id)

        monkeypatch.setattr(lifecycle_service, "_load_employee", fail_for_alice)

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        failed = {f.employee_id: f for f in batch.failed}
        assert failed[alice.id].error_code == UNHANDLED_ERROR_CODE
        assert [p.employee_id for p in batch.generated] == [chan.id]


class TestSkipping:
    def test_existing_payroll_skipped(self, session, bulk_generator, lifecycle_service, team, test_actor_id):
        department, alice, bora, chan = team
        lifecycle_service.create_draft(alice.id, JAN_START, JAN_END, "USD", test_actor_id)

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        assert [s.employee_id for s in batch.skipped] == [alice.id]
        assert batch.skipped[0].reason == ALREADY_EXISTS_REASON
        assert [p.employee_id for p in batch.generated] == [chan.id]
        assert payroll_count(session) == 2

    def test_rerun_skips_everything_generated(self, bulk_generator, team, test_actor_id):
        department = team[0]
        bulk_generator.generate_bulk(JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id)

        again = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        assert again.generated_count == 0
        assert again.skipped_count == 2
        assert again.failed_count == 1
        assert again.total == 3


class TestTargeting:
    def test_employee_ids_take_precedence(self, bulk_generator, team, create_department, test_actor_id):
        department, alice, bora, chan = team
        other = create_department("Finance")

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id,
            department_id=other.id, employee_ids=[chan.id],
        ).value

        assert [p.employee_id for p in batch.generated] == [chan.id]
        assert batch.total == 1

    def test_department_filter(self, bulk_generator, team, create_employee, engineer, test_actor_id):
        department = team[0]
        outsider = create_employee("Out", "Sider", position=engineer)

        batch = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, department_id=department.id,
        ).value

        assert outsider.id not in {p.employee_id for p in batch.generated}

    def test_all_employees_without_filters(self, bulk_generator, team, test_actor_id):
        batch = bulk_generator.generate_bulk(JAN_START, JAN_END, "USD", test_actor_id).value

        assert batch.total == 3

    @pytest.mark.parametrize("is_active,status", [
        (False, EmploymentStatus.ACTIVE),
        (True, EmploymentStatus.TERMINATED),
        (True, EmploymentStatus.ON_LEAVE),
    ])
    def test_ineligible_employees_ignored(
        self, bulk_generator, create_employee, engineer, usd, test_actor_id, is_active, status,
    ):
        create_employee(position=engineer, is_active=is_active, employment_status=status)

        result = bulk_generator.generate_bulk(JAN_START, JAN_END, "USD", test_actor_id)

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert result.message == "No active employees found matching criteria"


class TestUpfrontValidation:
    def test_invalid_period(self, session, bulk_generator, team, test_actor_id):
        result = bulk_generator.generate_bulk(JAN_END, JAN_START, "USD", test_actor_id)

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert payroll_count(session) == 0

    def test_unknown_currency(self, session, bulk_generator, team, test_actor_id):
        result = bulk_generator.generate_bulk(JAN_START, JAN_END, "EUR", test_actor_id)

        assert result.status == OperationStatus.NOT_FOUND
        assert payroll_count(session) == 0

    def test_unknown_employee_ids(self, bulk_generator, usd, test_actor_id):
        result = bulk_generator.generate_bulk(
            JAN_START, JAN_END, "USD", test_actor_id, employee_ids=[uuid4()],
        )

        assert result.status == OperationStatus.VALIDATION_ERROR


class TestBatchMetadata:
    def test_timestamps_and_logs(self, bulk_generator, team, test_actor_id, captured_logs):
        batch = bulk_generator.generate_bulk(JAN_START, JAN_END, "USD", test_actor_id).value

        assert batch.started_at is not None
        assert batch.completed_at >= batch.started_at
        assert batch.duration_ms >= 0

        completed = [r for r in captured_logs() if r["message"] == "bulk_generation_completed"]
        assert completed[0]["batch_id"] == str(batch.batch_id)
        assert (completed[0]["generated"], completed[0]["failed"]) == (2, 1)
