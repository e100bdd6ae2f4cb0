"""
Reference Data Service (``payroll_services.reference_data``).

Responsibility
--------------
Maintains the reference tables payroll generation reads: currencies and
progressive tax bracket tables.

Architecture position
---------------------
**Services layer**.  Uses kernel selectors for reads and the pure bracket
checks from ``payroll_engines.tax_brackets`` for validation.

Invariants enforced
-------------------
* Currency codes are uppercase ISO 4217 codes, unique among all rows.
  Creating a code that exists only as a soft-deleted row reactivates it.
* A bracket's currency must exist; ``0 <= min_amount < max_amount``;
  ``0 <= tax_rate <= 1``; ``fixed_amount >= 0``.
* Within one (country, currency, year) table, bracket names are unique and
  ranges never overlap among non-deleted brackets.
* Deletion is always a soft delete.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_engines.tax_brackets import (
    BracketTableIssue,
    check_bracket_table,
    find_overlapping_bracket,
)
from payroll_kernel.db.types import fits_numeric, validate_currency_code
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import CurrencyRecord, TaxBracketRecord
from payroll_kernel.domain.values import ZERO, to_decimal
from payroll_kernel.exceptions import (
    AmountPrecisionError,
    CurrencyAlreadyExistsError,
    CurrencyNotFoundError,
    DuplicateTaxBracketError,
    InvalidCurrencyCodeError,
    PayrollValidationError,
    TaxBracketNotFoundError,
    TaxBracketOverlapError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.currency import Currency
from payroll_kernel.models.tax_bracket import TaxBracket
from payroll_kernel.selectors.reference_selector import CurrencySelector, TaxBracketSelector
from payroll_services.results import BUSINESS_ERRORS, OperationResult

logger = get_logger("services.reference_data")

ONE = Decimal("1")


def _decimal_field(value, field_name: str) -> Decimal:
    try:
        amount = to_decimal(value, field_name)
    except (TypeError, ValueError) as exc:
        raise PayrollValidationError(str(exc)) from exc
    if not fits_numeric(amount):
        raise AmountPrecisionError(field_name, amount)
    return amount


class ReferenceDataService:
    """
    Currency and tax bracket maintenance.

    Every mutating method commits on success and rolls back on failure;
    business failures come back as ``OperationResult``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._currencies = CurrencySelector(session)
        self._brackets = TaxBracketSelector(session)

    # =========================================================================
    # Currencies
    # =========================================================================

    def create_currency(
        self,
        code: str,
        name: str,
        performed_by: UUID,
        symbol: str | None = None,
        country: str | None = None,
    ) -> OperationResult[CurrencyRecord]:
        code = (code or "").strip().upper()
        with LogContext.bind(actor_id=performed_by):
            try:
                if not validate_currency_code(code):
                    raise InvalidCurrencyCodeError(code)
                if not name:
                    raise PayrollValidationError("Currency name is required")

                currency = self._session.execute(
                    select(Currency).where(Currency.code == code)
                ).scalar_one_or_none()

                if currency is None:
                    currency = Currency(
                        code=code,
                        name=name,
                        symbol=symbol,
                        country=country,
                        is_active=True,
                        created_by_id=performed_by,
                    )
                    self._session.add(currency)
                    event = "currency_created"
                elif currency.is_deleted:
                    currency.name = name
                    currency.symbol = symbol
                    currency.country = country
                    currency.is_active = True
                    currency.is_deleted = False
                    currency.deleted_at = None
                    currency.deleted_by_id = None
                    currency.updated_by_id = performed_by
                    event = "currency_reactivated"
                else:
                    raise CurrencyAlreadyExistsError(code)

                self._session.flush()
                record = CurrencyRecord.from_model(currency)
                self._session.commit()
            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                raise

            logger.info(event, extra={"currency_code": code})
            return OperationResult.ok(record)

    def list_currencies(self) -> list[CurrencyRecord]:
        return self._currencies.list_currencies()

    def find_currency(self, currency_id: UUID) -> OperationResult[CurrencyRecord]:
        record = self._currencies.find_by_id(currency_id)
        if record is None:
            return OperationResult.from_error(CurrencyNotFoundError(str(currency_id)))
        return OperationResult.ok(record)

    def delete_currency(self, currency_id: UUID, performed_by: UUID) -> OperationResult[UUID]:
        """Soft-delete a currency.  Existing payrolls keep their code."""
        with LogContext.bind(actor_id=performed_by):
            try:
                currency = self._session.execute(
                    select(Currency)
                    .where(Currency.id == currency_id)
                    .where(Currency.is_deleted.is_(False))
                ).scalar_one_or_none()
                if currency is None:
                    raise CurrencyNotFoundError(str(currency_id))

                currency.is_deleted = True
                currency.deleted_at = self._clock.now()
                currency.deleted_by_id = performed_by
                currency.updated_by_id = performed_by
                code = currency.code
                self._session.commit()
            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                raise

            logger.info("currency_deleted", extra={"currency_code": code})
            return OperationResult.ok(currency_id)

    # =========================================================================
    # Tax brackets
    # =========================================================================

    def create_tax_bracket(
        self,
        country_code: str,
        currency_code: str,
        tax_year: int,
        bracket_name: str,
        min_amount: Decimal | int | str,
        max_amount: Decimal | int | str,
        tax_rate: Decimal | int | str,
        performed_by: UUID,
        fixed_amount: Decimal | int | str = ZERO,
    ) -> OperationResult[TaxBracketRecord]:
        """
        Add a bracket to the (country, currency, year) table.

        Rejects a range that overlaps any non-deleted bracket of the same
        table, so tables can only grow contiguously or with gaps.
        """
        with LogContext.bind(actor_id=performed_by):
            try:
                if not bracket_name:
                    raise PayrollValidationError("Bracket name is required")
                if not country_code:
                    raise PayrollValidationError("Country code is required")
                minimum = _decimal_field(min_amount, "min_amount")
                maximum = _decimal_field(max_amount, "max_amount")
                rate = _decimal_field(tax_rate, "tax_rate")
                fixed = _decimal_field(fixed_amount, "fixed_amount")

                if minimum < ZERO:
                    raise PayrollValidationError("min_amount must not be negative")
                if maximum <= minimum:
                    raise PayrollValidationError("max_amount must be greater than min_amount")
                if not ZERO <= rate <= ONE:
                    raise PayrollValidationError("tax_rate must be between 0 and 1")
                if fixed < ZERO:
                    raise PayrollValidationError("fixed_amount must not be negative")

                if self._currencies.find_by_code(currency_code) is None:
                    raise CurrencyNotFoundError(currency_code)

                table = self._brackets.table(country_code, currency_code, tax_year)
                for existing in table:
                    if existing.bracket_name == bracket_name:
                        raise DuplicateTaxBracketError(
                            bracket_name, country_code, currency_code, tax_year,
                        )
                overlapping = find_overlapping_bracket(table, minimum, maximum)
                if overlapping is not None:
                    raise TaxBracketOverlapError(bracket_name, overlapping.bracket_name)

                bracket = TaxBracket(
                    country_code=country_code,
                    currency_code=currency_code,
                    tax_year=tax_year,
                    bracket_name=bracket_name,
                    min_amount=minimum,
                    max_amount=maximum,
                    tax_rate=rate,
                    fixed_amount=fixed,
                    created_by_id=performed_by,
                )
                self._session.add(bracket)
                self._session.flush()
                record = TaxBracketRecord.from_model(bracket)
                self._session.commit()
            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                logger.info("tax_bracket_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                raise

            logger.info("tax_bracket_created", extra={
                "bracket_id": str(record.id),
                "country_code": country_code,
                "currency_code": currency_code,
                "tax_year": tax_year,
                "bracket_name": bracket_name,
            })
            return OperationResult.ok(record)

    def list_tax_brackets(
        self,
        country_code: str | None = None,
        tax_year: int | None = None,
    ) -> list[TaxBracketRecord]:
        return self._brackets.list_brackets(country_code=country_code, tax_year=tax_year)

    def find_tax_bracket(self, bracket_id: UUID) -> OperationResult[TaxBracketRecord]:
        record = self._brackets.find_by_id(bracket_id)
        if record is None:
            return OperationResult.from_error(TaxBracketNotFoundError(str(bracket_id)))
        return OperationResult.ok(record)

    def delete_tax_bracket(self, bracket_id: UUID, performed_by: UUID) -> OperationResult[UUID]:
        """Soft-delete a bracket.  Tax snapshots referencing it stay valid."""
        with LogContext.bind(actor_id=performed_by):
            try:
                bracket = self._session.execute(
                    select(TaxBracket)
                    .where(TaxBracket.id == bracket_id)
                    .where(TaxBracket.is_deleted.is_(False))
                ).scalar_one_or_none()
                if bracket is None:
                    raise TaxBracketNotFoundError(str(bracket_id))

                bracket.is_deleted = True
                bracket.deleted_at = self._clock.now()
                bracket.deleted_by_id = performed_by
                bracket.updated_by_id = performed_by
                self._session.commit()
            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                raise

            logger.info("tax_bracket_deleted", extra={"bracket_id": str(bracket_id)})
            return OperationResult.ok(bracket_id)

    def check_bracket_table(
        self,
        country_code: str,
        currency_code: str,
        tax_year: int,
    ) -> tuple[BracketTableIssue, ...]:
        """Gaps, overlaps and empty ranges of one table.  Read-only."""
        return check_bracket_table(self._brackets.table(country_code, currency_code, tax_year))
