"""
DTOs -- Immutable payroll data transfer objects.

Responsibility:
    Defines the status enums and frozen records that leave the kernel:
    PayrollRecord (header + items + tax snapshot), the reference-data
    records, and the read-side aggregates (PayrollPage, PayrollSummary,
    PayslipHistory).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model()`` class methods are boundary converters invoked by
    selectors and services, never by engine code.

Invariants enforced:
    - Callers never receive ORM entities, so nothing they hold can lazily
      load or mutate rows after the session that produced it is closed.
    - Monetary fields are Decimal; derived totals (gross, tax, total
      deductions) are computed from the stored fields, never re-rounded.

Data flow:
    Payroll (ORM) -> PayrollRecord -> PayrollSummary / PayslipRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_kernel.domain.values import ZERO, money_context, sum_decimals

if TYPE_CHECKING:
    from payroll_kernel.models.currency import Currency as CurrencyModel
    from payroll_kernel.models.payroll import Payroll as PayrollModel
    from payroll_kernel.models.payroll import PayrollItem as PayrollItemModel
    from payroll_kernel.models.payroll import TaxCalculation as TaxCalculationModel
    from payroll_kernel.models.tax_bracket import TaxBracket as TaxBracketModel


TAX_ITEM_NAME = "Tax"


class PayrollStatus(str, Enum):
    """Lifecycle status of a payroll.

    Contract: PENDING -> PROCESSED via finalize.  PAID is set by the
    disbursement process and is terminal.
    """

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    PAID = "PAID"


class PayrollItemType(str, Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ON_LEAVE = "ON_LEAVE"
    TERMINATED = "TERMINATED"


# =============================================================================
# Payroll
# =============================================================================


@dataclass(frozen=True)
class PayrollItemRecord:
    """A single earning or deduction line of a payroll."""

    id: UUID
    payroll_id: UUID
    item_type: PayrollItemType
    item_name: str
    amount: Decimal
    currency_code: str
    description: str | None

    @classmethod
    def from_model(cls, model: PayrollItemModel) -> PayrollItemRecord:
        return cls(
            id=model.id,
            payroll_id=model.payroll_id,
            item_type=PayrollItemType(model.item_type),
            item_name=model.item_name,
            amount=model.amount,
            currency_code=model.currency_code,
            description=model.description,
        )


@dataclass(frozen=True)
class TaxCalculationRecord:
    """Audit snapshot of the bracket and numbers used to tax one payroll."""

    id: UUID
    payroll_id: UUID
    employee_id: UUID
    tax_bracket_id: UUID
    tax_period_start: date
    tax_period_end: date
    gross_income: Decimal
    taxable_income: Decimal
    tax_amount: Decimal
    tax_rate_used: Decimal

    @classmethod
    def from_model(cls, model: TaxCalculationModel) -> TaxCalculationRecord:
        return cls(
            id=model.id,
            payroll_id=model.payroll_id,
            employee_id=model.employee_id,
            tax_bracket_id=model.tax_bracket_id,
            tax_period_start=model.tax_period_start,
            tax_period_end=model.tax_period_end,
            gross_income=model.gross_income,
            taxable_income=model.taxable_income,
            tax_amount=model.tax_amount,
            tax_rate_used=model.tax_rate_used,
        )


@dataclass(frozen=True)
class PayrollRecord:
    """
    A persisted payroll with its line items and optional tax snapshot.

    Guarantees:
        - ``items`` are ordered as they were generated: earnings first
          (Basic Salary, Overtime, Bonus), then deductions (Tax, Other
          Deductions).
        - ``gross_income``, ``tax_amount`` and ``total_deductions`` are
          derived from stored fields with exact Decimal arithmetic.
    """

    id: UUID
    employee_id: UUID
    currency_code: str
    pay_period_start: date
    pay_period_end: date
    basic_salary: Decimal
    overtime_hrs: Decimal
    overtime_rate: Decimal
    bonus: Decimal
    deductions: Decimal
    net_salary: Decimal
    status: PayrollStatus
    payment_date: date | None
    processed_at: datetime | None
    created_by_id: UUID
    updated_by_id: UUID | None
    items: tuple[PayrollItemRecord, ...] = field(default_factory=tuple)
    tax_calculation: TaxCalculationRecord | None = None
    created_at: datetime | None = None

    @property
    def overtime_pay(self) -> Decimal:
        with money_context():
            return self.overtime_rate * self.overtime_hrs

    @property
    def gross_income(self) -> Decimal:
        with money_context():
            return self.basic_salary + self.overtime_pay + self.bonus

    @property
    def tax_amount(self) -> Decimal:
        return sum_decimals(
            item.amount for item in self.items if item.item_name == TAX_ITEM_NAME
        )

    @property
    def total_deductions(self) -> Decimal:
        with money_context():
            return self.tax_amount + self.deductions

    @property
    def is_pending(self) -> bool:
        return self.status == PayrollStatus.PENDING

    def item(self, item_name: str) -> PayrollItemRecord | None:
        """Return the line named ``item_name``, or None."""
        for line in self.items:
            if line.item_name == item_name:
                return line
        return None

    @classmethod
    def from_model(cls, model: PayrollModel) -> PayrollRecord:
        tax_calc = model.tax_calculation
        return cls(
            id=model.id,
            employee_id=model.employee_id,
            currency_code=model.currency_code,
            pay_period_start=model.pay_period_start,
            pay_period_end=model.pay_period_end,
            basic_salary=model.basic_salary,
            overtime_hrs=model.overtime_hrs,
            overtime_rate=model.overtime_rate,
            bonus=model.bonus,
            deductions=model.deductions,
            net_salary=model.net_salary,
            status=PayrollStatus(model.status),
            payment_date=model.payment_date,
            processed_at=model.processed_at,
            created_by_id=model.created_by_id,
            updated_by_id=model.updated_by_id,
            items=tuple(
                PayrollItemRecord.from_model(item)
                for item in sorted(model.items, key=lambda i: i.line_number)
            ),
            tax_calculation=(
                TaxCalculationRecord.from_model(tax_calc) if tax_calc is not None else None
            ),
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class PayrollFilter:
    """
    Listing filter.  ``month`` only applies together with ``year``.

    ``year`` alone selects payrolls whose period starts in that calendar year;
    ``year`` + ``month`` those whose period starts in that month.
    """

    employee_id: UUID | None = None
    status: PayrollStatus | None = None
    year: int | None = None
    month: int | None = None
    department_id: UUID | None = None

    def __post_init__(self):
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")


@dataclass(frozen=True)
class PayrollPage:
    """One page of payrolls, newest first."""

    items: tuple[PayrollRecord, ...]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


# =============================================================================
# Summary
# =============================================================================


@dataclass(frozen=True)
class StatusBreakdown:
    status: PayrollStatus
    count: int
    total_amount: Decimal  # sum of net salary


@dataclass(frozen=True)
class DepartmentBreakdown:
    department: str
    employee_count: int
    total_salary: Decimal  # gross
    total_deductions: Decimal
    total_net_salary: Decimal


@dataclass(frozen=True)
class PayrollSummary:
    """
    Roll-up of non-deleted payrolls.

    ``total_deductions`` sums the non-tax deductions field; tax is reported
    separately in ``total_tax``.
    """

    total_payrolls: int = 0
    total_gross_salary: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net_salary: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_overtime_pay: Decimal = ZERO
    total_bonus: Decimal = ZERO
    by_status: tuple[StatusBreakdown, ...] = ()
    by_department: tuple[DepartmentBreakdown, ...] = ()


# =============================================================================
# Payslips
# =============================================================================


@dataclass(frozen=True)
class PayslipRecord:
    payroll_id: UUID
    period: str  # e.g. "January 2024"
    period_start: date
    period_end: date
    pay_date: date | None
    status: PayrollStatus
    currency_code: str
    gross: Decimal
    total_deductions: Decimal
    net: Decimal


@dataclass(frozen=True)
class YearToDate:
    year: int
    total_gross: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_net: Decimal = ZERO


@dataclass(frozen=True)
class PayslipHistory:
    employee_id: UUID
    payslips: tuple[PayslipRecord, ...]
    year_to_date: YearToDate


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class CurrencyRecord:
    id: UUID
    code: str
    name: str
    symbol: str | None
    country: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model: CurrencyModel) -> CurrencyRecord:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            symbol=model.symbol,
            country=model.country,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class TaxBracketRecord:
    """
    One progressive tax bracket.

    ``min_amount`` is inclusive, ``max_amount`` exclusive.  Tax for a gross
    income inside the range is ``gross * tax_rate - fixed_amount``.
    """

    id: UUID
    country_code: str
    currency_code: str
    tax_year: int
    bracket_name: str
    min_amount: Decimal
    max_amount: Decimal
    tax_rate: Decimal
    fixed_amount: Decimal

    def contains(self, amount: Decimal) -> bool:
        return self.min_amount <= amount < self.max_amount

    @classmethod
    def from_model(cls, model: TaxBracketModel) -> TaxBracketRecord:
        return cls(
            id=model.id,
            country_code=model.country_code,
            currency_code=model.currency_code,
            tax_year=model.tax_year,
            bracket_name=model.bracket_name,
            min_amount=model.min_amount,
            max_amount=model.max_amount,
            tax_rate=model.tax_rate,
            fixed_amount=model.fixed_amount,
        )
