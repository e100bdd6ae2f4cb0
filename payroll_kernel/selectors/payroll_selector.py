"""
Module: payroll_kernel.selectors.payroll_selector
Responsibility: Read-only query access to payrolls with their items and tax
    snapshot: lookup by id, filtered listing, pagination, duplicate-period
    probe and employee payslip history.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.  MUST NOT import from services or engines.

Invariants enforced:
    - Soft-deleted payrolls are never returned.
    - Items and the tax snapshot are loaded eagerly (selectin) and returned
      inside the PayrollRecord.
    - Listings are ordered newest first (created_at, then period start).
    - ``month`` filters only apply together with ``year``.

Failure modes:
    - Returns None or an empty collection when nothing matches; never raises
      on absence of data.
"""

import calendar
from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from payroll_kernel.domain.dtos import (
    PayrollFilter,
    PayrollPage,
    PayrollRecord,
    PayrollStatus,
    PayslipHistory,
    PayslipRecord,
    YearToDate,
)
from payroll_kernel.domain.values import sum_decimals
from payroll_kernel.models.organization import Employee
from payroll_kernel.models.payroll import Payroll
from payroll_kernel.selectors.base import BaseSelector

# Statuses whose amounts count towards year-to-date totals
YTD_STATUSES = frozenset({PayrollStatus.PROCESSED, PayrollStatus.PAID})


def period_start_bounds(year: int | None, month: int | None) -> tuple[date, date] | None:
    """
    Inclusive ``pay_period_start`` bounds for a year or year+month filter.

    ``month`` without ``year`` is ignored and yields None.
    """
    if year is None:
        return None
    if month is None:
        return date(year, 1, 1), date(year, 12, 31)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def period_label(period_start: date) -> str:
    """Human-readable period label, e.g. "January 2024"."""
    return f"{calendar.month_name[period_start.month]} {period_start.year}"


def apply_payroll_filter(query: Select, filters: PayrollFilter | None) -> Select:
    """Add the non-deleted condition and the optional filters to ``query``."""
    query = query.where(Payroll.is_deleted.is_(False))
    if filters is None:
        return query

    if filters.employee_id is not None:
        query = query.where(Payroll.employee_id == filters.employee_id)
    if filters.status is not None:
        query = query.where(Payroll.status == PayrollStatus(filters.status).value)

    bounds = period_start_bounds(filters.year, filters.month)
    if bounds is not None:
        query = query.where(
            Payroll.pay_period_start >= bounds[0],
            Payroll.pay_period_start <= bounds[1],
        )

    if filters.department_id is not None:
        query = query.where(
            Payroll.employee_id.in_(
                select(Employee.id).where(Employee.department_id == filters.department_id)
            )
        )
    return query


class PayrollSelector(BaseSelector[Payroll]):
    """
    Selector for payroll queries.

    Guarantees:
        - Every method returns PayrollRecord-based DTOs.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _base_query(self) -> Select:
        # Always reflect the stored rows, not objects cached in the session
        return (
            select(Payroll)
            .options(
                selectinload(Payroll.items),
                selectinload(Payroll.tax_calculation),
            )
            .execution_options(populate_existing=True)
        )

    def find_by_id(self, payroll_id: UUID) -> PayrollRecord | None:
        """
        Get a non-deleted payroll by ID.

        Returns:
            PayrollRecord with items and tax snapshot, or None.
        """
        payroll = self.session.execute(
            self._base_query()
            .where(Payroll.id == payroll_id)
            .where(Payroll.is_deleted.is_(False))
        ).scalar_one_or_none()

        if payroll is None:
            return None
        return PayrollRecord.from_model(payroll)

    def find_all(self, filters: PayrollFilter | None = None) -> list[PayrollRecord]:
        """All non-deleted payrolls matching ``filters``, newest first."""
        query = apply_payroll_filter(self._base_query(), filters).order_by(
            Payroll.created_at.desc(),
            Payroll.pay_period_start.desc(),
            Payroll.id,
        )
        payrolls = self.session.execute(query).scalars().all()
        return [PayrollRecord.from_model(p) for p in payrolls]

    def count(self, filters: PayrollFilter | None = None) -> int:
        query = apply_payroll_filter(
            select(func.count(Payroll.id)).select_from(Payroll), filters,
        )
        return self.session.execute(query).scalar_one()

    def page(
        self,
        page: int,
        limit: int,
        filters: PayrollFilter | None = None,
    ) -> PayrollPage:
        """
        One page of non-deleted payrolls, newest first.

        Preconditions: page >= 1, limit >= 1 (validated by the caller).
        """
        total = self.count(filters)
        query = (
            apply_payroll_filter(self._base_query(), filters)
            .order_by(
                Payroll.created_at.desc(),
                Payroll.pay_period_start.desc(),
                Payroll.id,
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        payrolls = self.session.execute(query).scalars().all()
        return PayrollPage(
            items=tuple(PayrollRecord.from_model(p) for p in payrolls),
            page=page,
            limit=limit,
            total=total,
        )

    def find_for_period(
        self,
        employee_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
    ) -> PayrollRecord | None:
        """The non-deleted payroll for exactly this employee and period, if any."""
        payroll = self.session.execute(
            self._base_query()
            .where(Payroll.employee_id == employee_id)
            .where(Payroll.pay_period_start == pay_period_start)
            .where(Payroll.pay_period_end == pay_period_end)
            .where(Payroll.is_deleted.is_(False))
        ).scalar_one_or_none()

        if payroll is None:
            return None
        return PayrollRecord.from_model(payroll)

    def employee_payslips(
        self,
        employee_id: UUID,
        year: int | None,
        ytd_year: int,
    ) -> PayslipHistory:
        """
        Payslip history for one employee.

        Args:
            employee_id: Employee whose payslips are listed.
            year: Restrict the listing to periods starting in this year.
            ytd_year: Year the year-to-date block is computed for.  Only
                PROCESSED and PAID payrolls count towards it.
        """
        listed = self._payrolls_for_employee(employee_id, year)
        ytd_source: Sequence[PayrollRecord] = (
            listed if year == ytd_year else self._payrolls_for_employee(employee_id, ytd_year)
        )

        payslips = tuple(
            PayslipRecord(
                payroll_id=record.id,
                period=period_label(record.pay_period_start),
                period_start=record.pay_period_start,
                period_end=record.pay_period_end,
                pay_date=record.payment_date,
                status=record.status,
                currency_code=record.currency_code,
                gross=record.gross_income,
                total_deductions=record.total_deductions,
                net=record.net_salary,
            )
            for record in listed
        )
        return PayslipHistory(
            employee_id=employee_id,
            payslips=payslips,
            year_to_date=self._year_to_date(ytd_year, ytd_source),
        )

    @staticmethod
    def _year_to_date(year: int, records: Sequence[PayrollRecord]) -> YearToDate:
        counted = [r for r in records if r.status in YTD_STATUSES]
        return YearToDate(
            year=year,
            total_gross=sum_decimals(r.gross_income for r in counted),
            total_tax=sum_decimals(r.tax_amount for r in counted),
            total_net=sum_decimals(r.net_salary for r in counted),
        )

    def _payrolls_for_employee(
        self, employee_id: UUID, year: int | None,
    ) -> list[PayrollRecord]:
        query = apply_payroll_filter(
            self._base_query(),
            PayrollFilter(employee_id=employee_id, year=year),
        ).order_by(Payroll.pay_period_start.desc(), Payroll.id)
        payrolls = self.session.execute(query).scalars().all()
        return [PayrollRecord.from_model(p) for p in payrolls]
