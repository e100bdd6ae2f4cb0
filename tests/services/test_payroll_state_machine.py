"""
Tests for finalize and delete.

Transitions:
    PENDING -> PROCESSED (finalize)
    PENDING -> soft-deleted (delete)
PROCESSED and PAID are final for both operations; a deleted payroll is
not found.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from payroll_kernel.domain.dtos import PayrollStatus
from payroll_kernel.models.payroll import Payroll, PayrollItem, TaxCalculation
from payroll_services.results import OperationStatus

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.fixture
def pending(lifecycle_service, employee, kh_brackets, test_actor_id):
    result = lifecycle_service.create_draft(
        employee.id, JAN_START, JAN_END, "USD", test_actor_id, bonus="500",
    )
    assert result.is_success
    return result.value


def as_utc_naive(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; PostgreSQL aware ones."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def set_status(session, payroll_id, status: PayrollStatus) -> None:
    values = {"status": status.value}
    if status == PayrollStatus.PAID:
        values["payment_date"] = date(2024, 2, 5)
    session.execute(update(Payroll).where(Payroll.id == payroll_id).values(**values))
    session.commit()


class TestFinalize:
    def test_pending_becomes_processed(self, lifecycle_service, pending, test_actor_id):
        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.is_success
        assert result.value.status == PayrollStatus.PROCESSED
        assert result.value.processed_at is not None
        assert result.value.updated_by_id == test_actor_id

    def test_processed_at_comes_from_clock(
        self, lifecycle_service, pending, test_actor_id, deterministic_clock,
    ):
        record = lifecycle_service.finalize(pending.id, test_actor_id).value

        assert as_utc_naive(record.processed_at) == as_utc_naive(deterministic_clock.now())

    def test_amounts_unchanged(self, lifecycle_service, pending, test_actor_id):
        record = lifecycle_service.finalize(pending.id, test_actor_id).value

        assert record.net_salary == pending.net_salary
        assert record.items == pending.items
        assert record.tax_calculation == pending.tax_calculation

    def test_finalize_twice_is_invalid_state(self, lifecycle_service, pending, test_actor_id):
        lifecycle_service.finalize(pending.id, test_actor_id)

        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.status == OperationStatus.INVALID_STATE
        assert result.message == "Cannot finalize payroll with status: PROCESSED"

    def test_paid_is_final(self, session, lifecycle_service, pending, test_actor_id):
        set_status(session, pending.id, PayrollStatus.PAID)

        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.status == OperationStatus.INVALID_STATE
        assert result.message == "Cannot finalize payroll with status: PAID"
        assert lifecycle_service.find_by_id(pending.id).value.status == PayrollStatus.PAID

    def test_unknown_payroll(self, lifecycle_service, test_actor_id):
        result = lifecycle_service.finalize(uuid4(), test_actor_id)

        assert result.status == OperationStatus.NOT_FOUND
        assert result.message == "Payroll not found"

    def test_deleted_payroll_not_found(self, lifecycle_service, pending, test_actor_id):
        lifecycle_service.delete(pending.id, test_actor_id)

        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.status == OperationStatus.NOT_FOUND

    def test_logged(self, lifecycle_service, pending, test_actor_id, captured_logs):
        lifecycle_service.finalize(pending.id, test_actor_id)

        finalized = [r for r in captured_logs() if r["message"] == "payroll_finalized"]
        assert finalized[0]["payroll_id"] == str(pending.id)


class TestDelete:
    def test_pending_is_soft_deleted(self, session, lifecycle_service, pending, test_actor_id):
        result = lifecycle_service.delete(pending.id, test_actor_id)

        assert result.is_success
        assert result.value == pending.id
        assert lifecycle_service.find_by_id(pending.id).status == OperationStatus.NOT_FOUND

        row = session.execute(
            select(Payroll)
            .where(Payroll.id == pending.id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        assert row.is_deleted
        assert row.deleted_by_id == test_actor_id
        assert row.deleted_at is not None

    def test_children_are_kept(self, session, lifecycle_service, pending, test_actor_id):
        lifecycle_service.delete(pending.id, test_actor_id)

        items = session.execute(
            select(func.count()).select_from(PayrollItem).where(PayrollItem.payroll_id == pending.id)
        ).scalar_one()
        snapshots = session.execute(
            select(func.count()).select_from(TaxCalculation).where(TaxCalculation.payroll_id == pending.id)
        ).scalar_one()
        assert items == len(pending.items)
        assert snapshots == 1

    def test_deleted_excluded_from_listing(self, lifecycle_service, pending, test_actor_id):
        lifecycle_service.delete(pending.id, test_actor_id)

        assert lifecycle_service.find_all().value == []

    @pytest.mark.parametrize("status", [PayrollStatus.PROCESSED, PayrollStatus.PAID])
    def test_only_pending_can_be_deleted(self, session, lifecycle_service, pending, test_actor_id, status):
        set_status(session, pending.id, status)

        result = lifecycle_service.delete(pending.id, test_actor_id)

        assert result.status == OperationStatus.INVALID_STATE
        assert result.message == "Only PENDING payrolls can be deleted"
        assert lifecycle_service.find_by_id(pending.id).is_success

    def test_delete_twice_not_found(self, lifecycle_service, pending, test_actor_id):
        lifecycle_service.delete(pending.id, test_actor_id)

        assert lifecycle_service.delete(pending.id, test_actor_id).status == OperationStatus.NOT_FOUND

    def test_period_can_be_regenerated(self, lifecycle_service, pending, employee, test_actor_id):
        lifecycle_service.delete(pending.id, test_actor_id)

        again = lifecycle_service.create_draft(employee.id, JAN_START, JAN_END, "USD", test_actor_id)

        assert again.is_success
        assert again.value.id != pending.id


class TestConcurrentWriter:
    """
    Another writer commits between the status check and the update.

    Simulated by changing the row underneath the locked entity; the
    conditional update must refuse to overwrite it.
    """

    def _interleave(self, session, lifecycle_service, monkeypatch, **values):
        original = lifecycle_service._lock_payroll

        def lock_then_race(payroll_id):
            payroll = original(payroll_id)
            session.execute(
                update(Payroll)
                .where(Payroll.id == payroll_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return payroll

        monkeypatch.setattr(lifecycle_service, "_lock_payroll", lock_then_race)

    def test_finalize_loses_to_finalize(self, session, lifecycle_service, pending, test_actor_id, monkeypatch):
        self._interleave(session, lifecycle_service, monkeypatch, status=PayrollStatus.PROCESSED.value)

        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.status == OperationStatus.INVALID_STATE
        assert result.message == "Cannot finalize payroll with status: PROCESSED"

    def test_delete_loses_to_finalize(self, session, lifecycle_service, pending, test_actor_id, monkeypatch):
        self._interleave(session, lifecycle_service, monkeypatch, status=PayrollStatus.PROCESSED.value)

        result = lifecycle_service.delete(pending.id, test_actor_id)

        assert result.status == OperationStatus.INVALID_STATE
        assert result.message == "Only PENDING payrolls can be deleted"

    def test_finalize_loses_to_delete(self, session, lifecycle_service, pending, test_actor_id, monkeypatch):
        self._interleave(session, lifecycle_service, monkeypatch, is_deleted=True)

        result = lifecycle_service.finalize(pending.id, test_actor_id)

        assert result.status == OperationStatus.NOT_FOUND
