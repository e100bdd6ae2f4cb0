"""
Module: payroll_kernel.selectors.summary_selector
Responsibility: Roll up non-deleted payrolls by status and by department for
    reporting.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/.  MUST NOT import from services or engines.

Invariants enforced:
    - Read-only; zero matching rows yields a zeroed summary, not an error.
    - Amounts are summed in Python with exact Decimal arithmetic over the
      loaded rows, never with SQL SUM on the amount columns.
    - Per payroll: gross = basic_salary + overtime_rate * overtime_hrs +
      bonus; tax = the "Tax" item amount.
"""

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from payroll_kernel.domain.dtos import (
    DepartmentBreakdown,
    PayrollFilter,
    PayrollRecord,
    PayrollStatus,
    PayrollSummary,
    StatusBreakdown,
)
from payroll_kernel.domain.values import sum_decimals
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.organization import Department, Employee
from payroll_kernel.models.payroll import Payroll
from payroll_kernel.selectors.base import BaseSelector
from payroll_kernel.selectors.payroll_selector import apply_payroll_filter

logger = get_logger("selectors.summary")

UNKNOWN_DEPARTMENT = "Unknown"


class PayrollSummarySelector(BaseSelector[Payroll]):
    """Aggregates payrolls into a PayrollSummary."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_summary(self, filters: PayrollFilter | None = None) -> PayrollSummary:
        """
        Summarize non-deleted payrolls.

        Only the ``year``, ``month`` and ``department_id`` parts of
        ``filters`` are expected; an empty filter summarizes everything.
        """
        filters = filters or PayrollFilter()
        rows = self.session.execute(
            apply_payroll_filter(
                select(Payroll, Department.department_name)
                .join(Employee, Employee.id == Payroll.employee_id)
                .outerjoin(Department, Department.id == Employee.department_id)
                .options(selectinload(Payroll.items))
                .execution_options(populate_existing=True),
                filters,
            )
        ).all()

        records = [(PayrollRecord.from_model(p), dept) for p, dept in rows]
        summary = self._aggregate(records)

        logger.debug(
            "payroll_summary_computed",
            extra={
                "year": filters.year,
                "month": filters.month,
                "department_id": str(filters.department_id) if filters.department_id else None,
                "total_payrolls": summary.total_payrolls,
            },
        )
        return summary

    @staticmethod
    def _aggregate(records: list[tuple[PayrollRecord, str | None]]) -> PayrollSummary:
        by_status: dict[PayrollStatus, list[PayrollRecord]] = defaultdict(list)
        by_department: dict[str, list[PayrollRecord]] = defaultdict(list)
        for record, department_name in records:
            by_status[record.status].append(record)
            by_department[department_name or UNKNOWN_DEPARTMENT].append(record)

        status_rows = tuple(
            StatusBreakdown(
                status=status,
                count=len(by_status[status]),
                total_amount=sum_decimals(r.net_salary for r in by_status[status]),
            )
            for status in PayrollStatus
            if status in by_status
        )

        department_rows = tuple(
            DepartmentBreakdown(
                department=name,
                employee_count=len({r.employee_id for r in group}),
                total_salary=sum_decimals(r.gross_income for r in group),
                total_deductions=sum_decimals(r.deductions for r in group),
                total_net_salary=sum_decimals(r.net_salary for r in group),
            )
            for name, group in sorted(by_department.items())
        )

        payrolls = [record for record, _ in records]
        return PayrollSummary(
            total_payrolls=len(payrolls),
            total_gross_salary=sum_decimals(r.gross_income for r in payrolls),
            total_deductions=sum_decimals(r.deductions for r in payrolls),
            total_net_salary=sum_decimals(r.net_salary for r in payrolls),
            total_tax=sum_decimals(r.tax_amount for r in payrolls),
            total_overtime_pay=sum_decimals(r.overtime_pay for r in payrolls),
            total_bonus=sum_decimals(r.bonus for r in payrolls),
            by_status=status_rows,
            by_department=department_rows,
        )
