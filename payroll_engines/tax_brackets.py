"""
Tax Bracket Resolver - Select the progressive bracket for a gross income.

Pure functions with no I/O.  Bracket tables are supplied by the caller
through a lookup callable, so the same resolver runs against the database
in services and against in-memory tables in tests.

Rules:
    - A bracket matches when ``min_amount <= gross < max_amount``.
    - When several brackets match (a misconfigured, overlapping table) the
      one with the greatest ``min_amount`` wins.
    - No match means zero tax.  There is no fallback to another bracket.
    - ``tax = gross * tax_rate - fixed_amount``, floored at zero.

Usage:
    from payroll_engines.tax_brackets import TaxBracketResolver

    resolver = TaxBracketResolver(lookup=selector.table)
    bracket = resolver.resolve("USA", "USD", 2024, Decimal("3234.375"))
    tax = compute_bracket_tax(Decimal("3234.375"), bracket)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.dtos import TaxBracketRecord
from payroll_kernel.domain.values import ZERO, money_context
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax_brackets")

# (country_code, currency_code, tax_year) -> brackets of that table
BracketLookup = Callable[[str, str, int], Sequence[TaxBracketRecord]]


def select_bracket(
    brackets: Sequence[TaxBracketRecord],
    gross_income: Decimal,
) -> TaxBracketRecord | None:
    """
    Return the bracket containing ``gross_income``, or None.

    Brackets are scanned by descending ``min_amount``; the first that
    contains the income wins.
    """
    for bracket in sorted(brackets, key=lambda b: b.min_amount, reverse=True):
        if bracket.contains(gross_income):
            return bracket
    return None


def compute_bracket_tax(gross_income: Decimal, bracket: TaxBracketRecord | None) -> Decimal:
    """
    Tax owed on ``gross_income`` under ``bracket``.

    Returns Decimal('0') when there is no bracket or the fixed offset
    exceeds ``gross * rate``.
    """
    if bracket is None:
        return ZERO
    with money_context():
        tax = gross_income * bracket.tax_rate - bracket.fixed_amount
    if tax < ZERO:
        return ZERO
    return tax


class TaxBracketResolver:
    """
    Resolve the applicable bracket for a (country, currency, year) table.

    Contract:
        ``lookup`` returns the non-deleted brackets of one table.  The
        resolver never raises for a missing table or an unmatched income;
        both resolve to None (zero tax).
    """

    def __init__(self, lookup: BracketLookup):
        self._lookup = lookup

    def resolve(
        self,
        country_code: str,
        currency_code: str,
        tax_year: int,
        gross_income: Decimal,
    ) -> TaxBracketRecord | None:
        brackets = self._lookup(country_code, currency_code, tax_year)
        bracket = select_bracket(brackets, gross_income)

        if bracket is None:
            logger.info(
                "tax_bracket_not_matched",
                extra={
                    "country_code": country_code,
                    "currency_code": currency_code,
                    "tax_year": tax_year,
                    "gross_income": str(gross_income),
                    "bracket_count": len(brackets),
                },
            )
        else:
            logger.debug(
                "tax_bracket_resolved",
                extra={
                    "bracket_id": str(bracket.id),
                    "bracket_name": bracket.bracket_name,
                    "gross_income": str(gross_income),
                },
            )
        return bracket

    __call__ = resolve


# =============================================================================
# Table validation
# =============================================================================


class BracketIssueKind(str, Enum):
    GAP = "gap"
    OVERLAP = "overlap"
    INVALID_RANGE = "invalid_range"


@dataclass(frozen=True)
class BracketTableIssue:
    """
    A problem found in a bracket table.

    ``lower``/``upper`` bound the affected income range: incomes in a GAP
    are untaxed, incomes in an OVERLAP match more than one bracket.
    """

    kind: BracketIssueKind
    lower: Decimal
    upper: Decimal
    bracket_names: tuple[str, ...]


def ranges_overlap(
    min_a: Decimal, max_a: Decimal, min_b: Decimal, max_b: Decimal,
) -> bool:
    """True when the half-open ranges [min_a, max_a) and [min_b, max_b) intersect."""
    return min_a < max_b and min_b < max_a


def find_overlapping_bracket(
    brackets: Sequence[TaxBracketRecord],
    min_amount: Decimal,
    max_amount: Decimal,
) -> TaxBracketRecord | None:
    """First bracket of ``brackets`` whose range intersects [min_amount, max_amount)."""
    for bracket in sorted(brackets, key=lambda b: b.min_amount):
        if ranges_overlap(bracket.min_amount, bracket.max_amount, min_amount, max_amount):
            return bracket
    return None


@traced_engine("bracket_table_check", "1.0")
def check_bracket_table(brackets: Sequence[TaxBracketRecord]) -> tuple[BracketTableIssue, ...]:
    """
    Report gaps, overlaps and empty ranges of one bracket table.

    The table is expected to start at zero and be contiguous: each bracket's
    ``min_amount`` equals the previous bracket's ``max_amount``.  An empty
    table has no issues.
    """
    issues: list[BracketTableIssue] = []
    ordered = sorted(brackets, key=lambda b: (b.min_amount, b.max_amount))

    valid: list[TaxBracketRecord] = []
    for bracket in ordered:
        if bracket.min_amount >= bracket.max_amount:
            issues.append(BracketTableIssue(
                kind=BracketIssueKind.INVALID_RANGE,
                lower=bracket.min_amount,
                upper=bracket.max_amount,
                bracket_names=(bracket.bracket_name,),
            ))
        else:
            valid.append(bracket)

    if not valid:
        return tuple(issues)

    if valid[0].min_amount > ZERO:
        issues.append(BracketTableIssue(
            kind=BracketIssueKind.GAP,
            lower=ZERO,
            upper=valid[0].min_amount,
            bracket_names=(valid[0].bracket_name,),
        ))

    reach = valid[0]
    for bracket in valid[1:]:
        if bracket.min_amount > reach.max_amount:
            issues.append(BracketTableIssue(
                kind=BracketIssueKind.GAP,
                lower=reach.max_amount,
                upper=bracket.min_amount,
                bracket_names=(reach.bracket_name, bracket.bracket_name),
            ))
        elif bracket.min_amount < reach.max_amount:
            issues.append(BracketTableIssue(
                kind=BracketIssueKind.OVERLAP,
                lower=bracket.min_amount,
                upper=min(bracket.max_amount, reach.max_amount),
                bracket_names=(reach.bracket_name, bracket.bracket_name),
            ))
        if bracket.max_amount > reach.max_amount:
            reach = bracket

    if issues:
        logger.warning(
            "tax_bracket_table_issues",
            extra={
                "issue_count": len(issues),
                "kinds": sorted({issue.kind.value for issue in issues}),
            },
        )
    return tuple(issues)
