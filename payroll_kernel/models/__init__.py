"""ORM models for the payroll kernel."""

from payroll_kernel.models.currency import Currency
from payroll_kernel.models.organization import (
    Department,
    Employee,
    EmployeeTaxConfig,
    Position,
)
from payroll_kernel.models.payroll import Payroll, PayrollItem, TaxCalculation
from payroll_kernel.models.tax_bracket import TaxBracket

__all__ = [
    "Currency",
    "Department",
    "Employee",
    "EmployeeTaxConfig",
    "Position",
    "Payroll",
    "PayrollItem",
    "TaxCalculation",
    "TaxBracket",
]
