"""
Payroll Calculation Engine - Gross to net for one employee and one period.

Pure function with no I/O.  Bracket resolution is injected so the engine
never touches the database.

Steps, in order:
    1. basic salary = override if given, else the position salary floor
    2. hourly rate = basic salary / monthly working hours (160)
    3. overtime rate = hourly rate * overtime multiplier (1.5)
    4. overtime pay = overtime rate * overtime hours
    5. gross = basic salary + overtime pay + bonus
    6. tax = 0 when exempt, else per the resolved bracket (0 when none)
    7. total deductions = tax + other deductions
    8. net = gross - total deductions

Nothing is rounded.  Line descriptions round for display only.

Usage:
    from payroll_engines.payroll_calculation import (
        EmployeeCompensation, PayrollInput, calculate_payroll,
    )

    breakdown = calculate_payroll(
        employee=EmployeeCompensation(employee_id=eid, salary_range_min=Decimal("2500")),
        payroll_input=PayrollInput(currency_code="USD", overtime_hours=Decimal("10")),
        resolve_bracket=resolver,
        tax_year=2024,
    )
    breakdown.net_salary
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from payroll_engines.tax_brackets import compute_bracket_tax
from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import round_money
from payroll_kernel.domain.dtos import TAX_ITEM_NAME, PayrollItemType, TaxBracketRecord
from payroll_kernel.domain.values import ZERO, money_context, optional_decimal
from payroll_kernel.exceptions import MissingBasicSalaryError, PayrollValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.payroll_calculation")

MONTHLY_WORKING_HOURS = Decimal("160")
OVERTIME_MULTIPLIER = Decimal("1.5")
DEFAULT_TAX_COUNTRY = "KH"

BASIC_SALARY_ITEM_NAME = "Basic Salary"
OVERTIME_ITEM_NAME = "Overtime"
BONUS_ITEM_NAME = "Bonus"
OTHER_DEDUCTIONS_ITEM_NAME = "Other Deductions"

# (country_code, currency_code, tax_year, gross_income) -> bracket or None
ResolveBracket = Callable[[str, str, int, Decimal], TaxBracketRecord | None]


@dataclass(frozen=True)
class CalculationParameters:
    """Constants of the calculation; see PayrollConfig for their source."""

    monthly_working_hours: Decimal = MONTHLY_WORKING_HOURS
    overtime_multiplier: Decimal = OVERTIME_MULTIPLIER
    default_tax_country: str = DEFAULT_TAX_COUNTRY
    display_decimal_places: int = 2

    def __post_init__(self):
        if self.monthly_working_hours <= 0:
            raise ValueError("monthly_working_hours must be positive")
        if self.overtime_multiplier <= 0:
            raise ValueError("overtime_multiplier must be positive")


@dataclass(frozen=True)
class EmployeeCompensation:
    """What the engine needs to know about an employee."""

    employee_id: UUID
    salary_range_min: Decimal | None
    tax_exempt: bool = False
    tax_country: str | None = None


@dataclass(frozen=True)
class PayrollInput:
    """
    Per-period inputs.

    Amounts accept Decimal, int or str; None means zero (or, for the
    override, "use the position salary").
    """

    currency_code: str
    overtime_hours: Decimal | int | str | None = None
    bonus: Decimal | int | str | None = None
    deductions: Decimal | int | str | None = None
    basic_salary_override: Decimal | int | str | None = None


@dataclass(frozen=True)
class PayrollLine:
    """An earning or deduction line to be persisted as a PayrollItem."""

    item_type: PayrollItemType
    item_name: str
    amount: Decimal
    description: str


@dataclass(frozen=True)
class PayrollBreakdown:
    """
    Result of the calculation.

    Guarantees:
        - ``gross_income == basic_salary + overtime_pay + bonus``
        - ``net_salary == gross_income - tax_amount - deductions``
        - ``lines`` holds only strictly positive amounts.
        - ``tax_bracket`` is set only when tax was applied (not exempt and a
          bracket matched); a TaxCalculation snapshot is due exactly then.
    """

    basic_salary: Decimal
    hourly_rate: Decimal
    overtime_rate: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    bonus: Decimal
    gross_income: Decimal
    tax_amount: Decimal
    deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    tax_exempt: bool
    tax_country: str | None
    tax_year: int
    tax_bracket: TaxBracketRecord | None
    tax_rate_used: Decimal
    lines: tuple[PayrollLine, ...]

    @property
    def tax_applied(self) -> bool:
        return self.tax_bracket is not None

    @property
    def taxable_income(self) -> Decimal:
        return self.gross_income

    def line(self, item_name: str) -> PayrollLine | None:
        for line in self.lines:
            if line.item_name == item_name:
                return line
        return None


def _amount(value, field_name: str) -> Decimal:
    try:
        amount = optional_decimal(value, field_name)
    except (TypeError, ValueError) as exc:
        raise PayrollValidationError(str(exc)) from exc
    return _non_negative(amount, field_name)


def _non_negative(value: Decimal, field_name: str) -> Decimal:
    if value < ZERO:
        raise PayrollValidationError(f"{field_name} must not be negative, got {value}")
    return value


def _build_lines(
    basic_salary: Decimal,
    overtime_hours: Decimal,
    overtime_rate: Decimal,
    overtime_pay: Decimal,
    bonus: Decimal,
    tax_amount: Decimal,
    tax_rate: Decimal,
    deductions: Decimal,
    places: int,
) -> tuple[PayrollLine, ...]:
    lines: list[PayrollLine] = []
    if basic_salary > ZERO:
        lines.append(PayrollLine(
            PayrollItemType.EARNING, BASIC_SALARY_ITEM_NAME, basic_salary,
            "Monthly base salary",
        ))
    if overtime_pay > ZERO:
        lines.append(PayrollLine(
            PayrollItemType.EARNING, OVERTIME_ITEM_NAME, overtime_pay,
            f"{round_money(overtime_hours, places)} hours @ "
            f"{round_money(overtime_rate, places)}/hr",
        ))
    if bonus > ZERO:
        lines.append(PayrollLine(
            PayrollItemType.EARNING, BONUS_ITEM_NAME, bonus, "Performance bonus",
        ))
    if tax_amount > ZERO:
        with money_context():
            percent = tax_rate * 100
        lines.append(PayrollLine(
            PayrollItemType.DEDUCTION, TAX_ITEM_NAME, tax_amount,
            f"Tax rate: {round_money(percent, places)}%",
        ))
    if deductions > ZERO:
        lines.append(PayrollLine(
            PayrollItemType.DEDUCTION, OTHER_DEDUCTIONS_ITEM_NAME, deductions,
            "Additional deductions",
        ))
    return tuple(lines)


@traced_engine("payroll_calculation", "1.0", fingerprint_fields=("payroll_input", "tax_year"))
def calculate_payroll(
    *,
    employee: EmployeeCompensation,
    payroll_input: PayrollInput,
    resolve_bracket: ResolveBracket,
    tax_year: int,
    parameters: CalculationParameters | None = None,
) -> PayrollBreakdown:
    """
    Compute the gross/tax/net breakdown for one employee.

    Raises:
        MissingBasicSalaryError: no override and no position salary.
        PayrollValidationError: a negative, non-numeric or float amount.
    """
    params = parameters or CalculationParameters()

    if payroll_input.basic_salary_override is not None:
        basic_salary = _amount(payroll_input.basic_salary_override, "basic_salary_override")
    elif employee.salary_range_min is not None:
        basic_salary = _amount(employee.salary_range_min, "salary_range_min")
    else:
        raise MissingBasicSalaryError(str(employee.employee_id))

    overtime_hours = _amount(payroll_input.overtime_hours, "overtime_hours")
    bonus = _amount(payroll_input.bonus, "bonus")
    deductions = _amount(payroll_input.deductions, "deductions")

    with money_context():
        hourly_rate = basic_salary / params.monthly_working_hours
        overtime_rate = hourly_rate * params.overtime_multiplier
        overtime_pay = overtime_rate * overtime_hours
        gross_income = basic_salary + overtime_pay + bonus

    tax_country: str | None = None
    bracket: TaxBracketRecord | None = None
    tax_amount = ZERO
    tax_rate_used = ZERO

    if not employee.tax_exempt:
        tax_country = employee.tax_country or params.default_tax_country
        bracket = resolve_bracket(
            tax_country, payroll_input.currency_code, tax_year, gross_income,
        )
        if bracket is not None:
            tax_amount = compute_bracket_tax(gross_income, bracket)
            tax_rate_used = bracket.tax_rate

    with money_context():
        total_deductions = tax_amount + deductions
        net_salary = gross_income - total_deductions

    breakdown = PayrollBreakdown(
        basic_salary=basic_salary,
        hourly_rate=hourly_rate,
        overtime_rate=overtime_rate,
        overtime_hours=overtime_hours,
        overtime_pay=overtime_pay,
        bonus=bonus,
        gross_income=gross_income,
        tax_amount=tax_amount,
        deductions=deductions,
        total_deductions=total_deductions,
        net_salary=net_salary,
        tax_exempt=employee.tax_exempt,
        tax_country=tax_country,
        tax_year=tax_year,
        tax_bracket=bracket,
        tax_rate_used=tax_rate_used,
        lines=_build_lines(
            basic_salary, overtime_hours, overtime_rate, overtime_pay, bonus,
            tax_amount, tax_rate_used, deductions, params.display_decimal_places,
        ),
    )

    logger.info(
        "payroll_calculated",
        extra={
            "employee_id": str(employee.employee_id),
            "currency_code": payroll_input.currency_code,
            "gross_income": str(gross_income),
            "tax_amount": str(tax_amount),
            "net_salary": str(net_salary),
            "tax_exempt": employee.tax_exempt,
            "tax_bracket_id": str(bracket.id) if bracket else None,
            "line_count": len(breakdown.lines),
        },
    )
    return breakdown
