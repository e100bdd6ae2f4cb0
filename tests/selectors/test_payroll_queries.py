"""
Tests for payroll reads: listing, pagination, summary and payslips.

Fixture data (KH 5% table, tax year 2024):

    Alice (Engineering, 2500)  January  bonus 500     gross 3000  tax 150  net 2850
    Alice                      February               gross 2500  tax 125  net 2375
    Bora  (Finance, 3000)      January  deductions 100 gross 3000 tax 150  net 2750

Alice's January payroll is finalized; the other two stay PENDING.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_kernel.domain.dtos import PayrollStatus
from payroll_services.results import OperationStatus

JAN = (date(2024, 1, 1), date(2024, 1, 31))
FEB = (date(2024, 2, 1), date(2024, 2, 29))


@dataclass
class Ledger:
    engineering: object
    finance: object
    alice: object
    bora: object
    alice_jan: object
    alice_feb: object
    bora_jan: object


@pytest.fixture
def ledger(
    lifecycle_service, create_department, create_position, create_employee,
    kh_brackets, test_actor_id,
):
    engineering = create_department("Engineering")
    finance = create_department("Finance")
    alice = create_employee(
        "Alice", "Ang", department=engineering,
        position=create_position("Engineer", Decimal("2500.00"), department=engineering),
    )
    bora = create_employee(
        "Bora", "Keo", department=finance,
        position=create_position("Accountant", Decimal("3000.00"), department=finance),
    )

    def draft(employee, period, **inputs):
        result = lifecycle_service.create_draft(employee.id, *period, "USD", test_actor_id, **inputs)
        assert result.is_success, result.message
        return result.value

    alice_jan = draft(alice, JAN, bonus="500")
    alice_feb = draft(alice, FEB)
    bora_jan = draft(bora, JAN, deductions="100")
    lifecycle_service.finalize(alice_jan.id, test_actor_id)

    return Ledger(engineering, finance, alice, bora, alice_jan, alice_feb, bora_jan)


class TestFindAll:
    def test_all_non_deleted(self, lifecycle_service, ledger, test_actor_id):
        lifecycle_service.delete(ledger.bora_jan.id, test_actor_id)

        ids = {p.id for p in lifecycle_service.find_all().value}

        assert ids == {ledger.alice_jan.id, ledger.alice_feb.id}

    def test_employee_filter_newest_first(self, lifecycle_service, ledger):
        records = lifecycle_service.find_all(employee_id=ledger.alice.id).value

        assert [p.id for p in records] == [ledger.alice_feb.id, ledger.alice_jan.id]

    def test_status_filter(self, lifecycle_service, ledger):
        records = lifecycle_service.find_all(status=PayrollStatus.PROCESSED).value

        assert [p.id for p in records] == [ledger.alice_jan.id]
        assert lifecycle_service.find_all(status="PAID").value == []

    def test_year_and_month(self, lifecycle_service, ledger):
        assert len(lifecycle_service.find_all(year=2024).value) == 3
        assert len(lifecycle_service.find_all(year=2024, month=1).value) == 2
        assert len(lifecycle_service.find_all(year=2024, month=2).value) == 1
        assert lifecycle_service.find_all(year=2023).value == []

    def test_month_without_year_is_ignored(self, lifecycle_service, ledger):
        assert len(lifecycle_service.find_all(month=2).value) == 3

    def test_department_filter(self, lifecycle_service, ledger):
        records = lifecycle_service.find_all(department_id=ledger.finance.id).value

        assert [p.id for p in records] == [ledger.bora_jan.id]

    @pytest.mark.parametrize("kwargs", [
        {"status": "BOGUS"},
        {"year": 2024, "month": 13},
        {"year": 2024, "month": 0},
    ])
    def test_invalid_filters(self, lifecycle_service, ledger, kwargs):
        result = lifecycle_service.find_all(**kwargs)

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert result.error_code == "PAYROLL_VALIDATION_ERROR"

    def test_records_carry_items(self, lifecycle_service, ledger):
        record = lifecycle_service.find_by_id(ledger.bora_jan.id).value

        assert record.item("Other Deductions").amount == Decimal("100")
        assert record.total_deductions == Decimal("250")


class TestPagination:
    def test_first_page(self, lifecycle_service, ledger):
        page = lifecycle_service.list_payrolls_page(page=1, limit=2).value

        assert len(page.items) == 2
        assert (page.page, page.limit, page.total) == (1, 2, 3)
        assert page.total_pages == 2
        assert page.has_next
        assert not page.has_previous

    def test_last_page(self, lifecycle_service, ledger):
        page = lifecycle_service.list_payrolls_page(page=2, limit=2).value

        assert len(page.items) == 1
        assert not page.has_next
        assert page.has_previous

    def test_pages_partition_listing(self, lifecycle_service, ledger):
        first = lifecycle_service.list_payrolls_page(page=1, limit=2).value
        second = lifecycle_service.list_payrolls_page(page=2, limit=2).value

        paged = [p.id for p in first.items + second.items]
        assert paged == [p.id for p in lifecycle_service.find_all().value]

    def test_past_the_end_is_empty(self, lifecycle_service, ledger):
        page = lifecycle_service.list_payrolls_page(page=5, limit=2).value

        assert page.items == ()
        assert page.total == 3

    def test_default_limit(self, lifecycle_service, ledger):
        page = lifecycle_service.list_payrolls_page().value

        assert page.limit == 20
        assert page.total_pages == 1

    def test_filtered_total(self, lifecycle_service, ledger):
        page = lifecycle_service.list_payrolls_page(status="PENDING").value

        assert page.total == 2

    def test_empty(self, lifecycle_service, usd):
        page = lifecycle_service.list_payrolls_page().value

        assert page.total == 0
        assert page.total_pages == 0
        assert not page.has_next

    @pytest.mark.parametrize("kwargs", [
        {"page": 0},
        {"limit": 0},
        {"limit": 101},
        {"year": 2024, "month": 13},
        {"status": "BOGUS"},
    ])
    def test_invalid_arguments(self, lifecycle_service, kwargs):
        result = lifecycle_service.list_payrolls_page(**kwargs)

        assert result.status == OperationStatus.VALIDATION_ERROR


class TestSummary:
    def test_totals(self, lifecycle_service, ledger):
        summary = lifecycle_service.get_summary().value

        assert summary.total_payrolls == 3
        assert summary.total_gross_salary == Decimal("8500")
        assert summary.total_tax == Decimal("425")
        assert summary.total_deductions == Decimal("100")
        assert summary.total_net_salary == Decimal("7975")
        assert summary.total_bonus == Decimal("500")
        assert summary.total_overtime_pay == Decimal("0")

    def test_by_status(self, lifecycle_service, ledger):
        by_status = {row.status: row for row in lifecycle_service.get_summary().value.by_status}

        assert set(by_status) == {PayrollStatus.PENDING, PayrollStatus.PROCESSED}
        assert by_status[PayrollStatus.PENDING].count == 2
        assert by_status[PayrollStatus.PENDING].total_amount == Decimal("5125")
        assert by_status[PayrollStatus.PROCESSED].total_amount == Decimal("2850")

    def test_by_department(self, lifecycle_service, ledger):
        rows = lifecycle_service.get_summary().value.by_department

        assert [(r.department, r.employee_count, r.total_salary, r.total_deductions, r.total_net_salary)
                for r in rows] == [
            ("Engineering", 1, Decimal("5500"), Decimal("0"), Decimal("5225")),
            ("Finance", 1, Decimal("3000"), Decimal("100"), Decimal("2750")),
        ]

    def test_month_filter(self, lifecycle_service, ledger):
        summary = lifecycle_service.get_summary(year=2024, month=2).value

        assert summary.total_payrolls == 1
        assert summary.total_net_salary == Decimal("2375")

    def test_department_filter(self, lifecycle_service, ledger):
        summary = lifecycle_service.get_summary(department_id=ledger.finance.id).value

        assert summary.total_payrolls == 1
        assert [r.department for r in summary.by_department] == ["Finance"]

    def test_deleted_excluded(self, lifecycle_service, ledger, test_actor_id):
        lifecycle_service.delete(ledger.alice_feb.id, test_actor_id)

        assert lifecycle_service.get_summary().value.total_payrolls == 2

    def test_employee_without_department(
        self, lifecycle_service, create_employee, engineer, kh_brackets, test_actor_id,
    ):
        loner = create_employee(position=engineer)
        lifecycle_service.create_draft(loner.id, *JAN, "USD", test_actor_id)

        rows = lifecycle_service.get_summary().value.by_department

        assert [r.department for r in rows] == ["Unknown"]

    def test_empty(self, lifecycle_service, usd):
        summary = lifecycle_service.get_summary(year=2023).value

        assert summary.total_payrolls == 0
        assert summary.total_net_salary == Decimal("0")
        assert summary.by_status == ()

    def test_invalid_month(self, lifecycle_service, usd):
        result = lifecycle_service.get_summary(year=2024, month=13)

        assert result.status == OperationStatus.VALIDATION_ERROR
        assert "month" in result.message


class TestPayslips:
    def test_listing_newest_first(self, lifecycle_service, ledger):
        history = lifecycle_service.get_employee_payslips(ledger.alice.id).value

        assert [p.period for p in history.payslips] == ["February 2024", "January 2024"]
        january = history.payslips[1]
        assert january.status == PayrollStatus.PROCESSED
        assert january.gross == Decimal("3000")
        assert january.total_deductions == Decimal("150")
        assert january.net == Decimal("2850")
        assert january.pay_date is None

    def test_year_to_date_counts_processed_only(self, lifecycle_service, ledger):
        ytd = lifecycle_service.get_employee_payslips(ledger.alice.id).value.year_to_date

        assert ytd.year == 2024
        assert (ytd.total_gross, ytd.total_tax, ytd.total_net) == (
            Decimal("3000"), Decimal("150"), Decimal("2850"),
        )

    def test_other_year(self, lifecycle_service, ledger):
        history = lifecycle_service.get_employee_payslips(ledger.alice.id, year=2023).value

        assert history.payslips == ()
        assert history.year_to_date.year == 2023
        assert history.year_to_date.total_net == Decimal("0")

    def test_pending_only_employee(self, lifecycle_service, ledger):
        history = lifecycle_service.get_employee_payslips(ledger.bora.id).value

        assert len(history.payslips) == 1
        assert history.year_to_date.total_net == Decimal("0")

    def test_unknown_employee(self, lifecycle_service, usd):
        result = lifecycle_service.get_employee_payslips(uuid4())

        assert result.status == OperationStatus.NOT_FOUND
