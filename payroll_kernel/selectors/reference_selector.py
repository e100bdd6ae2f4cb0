"""
Module: payroll_kernel.selectors.reference_selector
Responsibility: Read-only access to payroll reference data: currencies and
    tax bracket tables.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.

Invariants enforced:
    - Soft-deleted rows are never returned.
    - Bracket tables are ordered ascending by ``min_amount``; bracket
      selection by amount happens in the engine, not in SQL.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.dtos import CurrencyRecord, TaxBracketRecord
from payroll_kernel.models.currency import Currency
from payroll_kernel.models.tax_bracket import TaxBracket
from payroll_kernel.selectors.base import BaseSelector


class CurrencySelector(BaseSelector[Currency]):
    """Currency lookups."""

    def __init__(self, session: Session):
        super().__init__(session)

    def find_by_code(self, code: str) -> CurrencyRecord | None:
        """The non-deleted currency with this code, active or not."""
        currency = self.session.execute(
            select(Currency)
            .where(Currency.code == code)
            .where(Currency.is_deleted.is_(False))
        ).scalar_one_or_none()
        return CurrencyRecord.from_model(currency) if currency is not None else None

    def find_by_id(self, currency_id: UUID) -> CurrencyRecord | None:
        currency = self.session.execute(
            select(Currency)
            .where(Currency.id == currency_id)
            .where(Currency.is_deleted.is_(False))
        ).scalar_one_or_none()
        return CurrencyRecord.from_model(currency) if currency is not None else None

    def is_usable(self, code: str) -> bool:
        """True when a payroll may reference this currency."""
        currency = self.find_by_code(code)
        return currency is not None and currency.is_active

    def list_currencies(self) -> list[CurrencyRecord]:
        currencies = self.session.execute(
            select(Currency)
            .where(Currency.is_deleted.is_(False))
            .order_by(Currency.code)
        ).scalars().all()
        return [CurrencyRecord.from_model(c) for c in currencies]


class TaxBracketSelector(BaseSelector[TaxBracket]):
    """Tax bracket lookups."""

    def __init__(self, session: Session):
        super().__init__(session)

    def table(
        self,
        country_code: str,
        currency_code: str,
        tax_year: int,
    ) -> list[TaxBracketRecord]:
        """
        All non-deleted brackets of one table, ascending by ``min_amount``.

        Signature matches ``payroll_engines.tax_brackets.BracketLookup``.
        """
        brackets = self.session.execute(
            select(TaxBracket)
            .where(TaxBracket.country_code == country_code)
            .where(TaxBracket.currency_code == currency_code)
            .where(TaxBracket.tax_year == tax_year)
            .where(TaxBracket.is_deleted.is_(False))
        ).scalars().all()
        return sorted(
            (TaxBracketRecord.from_model(b) for b in brackets),
            key=lambda b: b.min_amount,
        )

    def find_by_id(self, bracket_id: UUID) -> TaxBracketRecord | None:
        bracket = self.session.execute(
            select(TaxBracket)
            .where(TaxBracket.id == bracket_id)
            .where(TaxBracket.is_deleted.is_(False))
        ).scalar_one_or_none()
        return TaxBracketRecord.from_model(bracket) if bracket is not None else None

    def list_brackets(
        self,
        country_code: str | None = None,
        tax_year: int | None = None,
    ) -> list[TaxBracketRecord]:
        """Non-deleted brackets, optionally filtered, ascending by ``min_amount``."""
        query = select(TaxBracket).where(TaxBracket.is_deleted.is_(False))
        if country_code is not None:
            query = query.where(TaxBracket.country_code == country_code)
        if tax_year is not None:
            query = query.where(TaxBracket.tax_year == tax_year)
        brackets = self.session.execute(query).scalars().all()
        return sorted(
            (TaxBracketRecord.from_model(b) for b in brackets),
            key=lambda b: (b.country_code, b.currency_code, b.tax_year, b.min_amount),
        )
