"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculation engines.  This is the canonical import surface for
    payroll_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel domain/db types, exceptions and logging.
    MUST NOT import payroll_services.

Invariants enforced:
    - Purity: engines never read the clock; the tax year is a parameter.
    - Decimal-only arithmetic; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.
"""

from payroll_engines.payroll_calculation import (
    MONTHLY_WORKING_HOURS,
    OVERTIME_MULTIPLIER,
    CalculationParameters,
    EmployeeCompensation,
    PayrollBreakdown,
    PayrollInput,
    PayrollLine,
    calculate_payroll,
)
from payroll_engines.tax_brackets import (
    BracketIssueKind,
    BracketTableIssue,
    TaxBracketResolver,
    check_bracket_table,
    compute_bracket_tax,
    find_overlapping_bracket,
    select_bracket,
)

__all__ = [
    "MONTHLY_WORKING_HOURS",
    "OVERTIME_MULTIPLIER",
    "CalculationParameters",
    "EmployeeCompensation",
    "PayrollBreakdown",
    "PayrollInput",
    "PayrollLine",
    "calculate_payroll",
    "BracketIssueKind",
    "BracketTableIssue",
    "TaxBracketResolver",
    "check_bracket_table",
    "compute_bracket_tax",
    "find_overlapping_bracket",
    "select_bracket",
]
