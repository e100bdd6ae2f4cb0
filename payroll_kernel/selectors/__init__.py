"""Read-only selectors for payroll queries."""

from payroll_kernel.selectors.base import BaseSelector
from payroll_kernel.selectors.payroll_selector import PayrollSelector
from payroll_kernel.selectors.reference_selector import CurrencySelector, TaxBracketSelector
from payroll_kernel.selectors.summary_selector import PayrollSummarySelector

__all__ = [
    "BaseSelector",
    "PayrollSelector",
    "PayrollSummarySelector",
    "CurrencySelector",
    "TaxBracketSelector",
]
