"""
Payroll Lifecycle Service (``payroll_services.payroll_lifecycle``).

Responsibility
--------------
Creates payroll drafts and carries them through their lifecycle:

    PENDING --finalize--> PROCESSED        (PAID is set externally)
    PENDING --delete----> soft-deleted

Validation, employee/currency loading and persistence happen here; the
gross-to-net arithmetic is delegated to ``payroll_engines``.

Architecture position
---------------------
**Services layer**.  Composes the pure engines
(``calculate_payroll``, ``TaxBracketResolver``) with kernel models and
selectors.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary: ``commit`` on
  success, ``rollback`` on a business failure or any exception.
* Header, items and tax snapshot of a draft are written in one transaction;
  a failure at any step leaves none of them behind.
* One non-deleted payroll per employee and period: probed before the
  calculation and enforced by a partial unique index.
* finalize/delete lock the row and then update it with a conditional
  ``WHERE status = 'PENDING' AND is_deleted = false``, so the status check
  and the write are atomic against concurrent writers.
* The performer of every mutation is an explicit ``performed_by`` argument.

Failure modes
-------------
* Business failures (validation, not found, invalid state, already exists)
  -> ``OperationResult`` with ``is_success == False``; session rolled back.
* ``PayrollPersistenceError`` or any unexpected exception -> session
  rolled back, exception re-raised.

Usage::

    service = PayrollLifecycleService(session, clock=clock)
    result = service.create_draft(
        employee_id=employee_id,
        pay_period_start=date(2024, 1, 1),
        pay_period_end=date(2024, 1, 31),
        currency_code="USD",
        performed_by=actor_id,
        overtime_hours=Decimal("10"),
    )
    if result.is_success:
        service.finalize(result.value.id, performed_by=actor_id)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from payroll_engines.payroll_calculation import (
    EmployeeCompensation,
    PayrollBreakdown,
    PayrollInput,
    calculate_payroll,
)
from payroll_engines.tax_brackets import TaxBracketResolver
from payroll_kernel.db.types import fits_numeric
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import (
    PayrollFilter,
    PayrollPage,
    PayrollRecord,
    PayrollStatus,
    PayrollSummary,
    PayslipHistory,
)
from payroll_kernel.exceptions import (
    AmountPrecisionError,
    CurrencyNotFoundError,
    DuplicatePayrollError,
    EmployeeNotFoundError,
    InvalidPayPeriodError,
    InvalidPayrollStateError,
    PayrollNotFoundError,
    PayrollPersistenceError,
    PayrollValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.organization import Employee
from payroll_kernel.models.payroll import Payroll, PayrollItem, TaxCalculation
from payroll_kernel.selectors.payroll_selector import PayrollSelector
from payroll_kernel.selectors.reference_selector import CurrencySelector, TaxBracketSelector
from payroll_kernel.selectors.summary_selector import PayrollSummarySelector
from payroll_services.config import PayrollConfig
from payroll_services.results import BUSINESS_ERRORS, OperationResult

logger = get_logger("services.payroll_lifecycle")

Amount = Decimal | int | str | None


def validate_pay_period(pay_period_start: date, pay_period_end: date) -> None:
    """Raise InvalidPayPeriodError unless end is strictly after start."""
    if pay_period_end <= pay_period_start:
        raise InvalidPayPeriodError(pay_period_start, pay_period_end)


def build_payroll_filter(
    employee_id: UUID | None = None,
    status: PayrollStatus | str | None = None,
    year: int | None = None,
    month: int | None = None,
    department_id: UUID | None = None,
) -> PayrollFilter:
    """PayrollFilter from raw arguments; PayrollValidationError when they are invalid."""
    try:
        return PayrollFilter(
            employee_id=employee_id,
            status=PayrollStatus(status) if status is not None else None,
            year=year,
            month=month,
            department_id=department_id,
        )
    except ValueError as exc:
        raise PayrollValidationError(str(exc)) from exc


def require_storable(breakdown: PayrollBreakdown) -> None:
    """Raise AmountPrecisionError for any amount the money columns would round."""
    stored = {
        "basic_salary": breakdown.basic_salary,
        "overtime_hours": breakdown.overtime_hours,
        "overtime_rate": breakdown.overtime_rate,
        "overtime_pay": breakdown.overtime_pay,
        "bonus": breakdown.bonus,
        "deductions": breakdown.deductions,
        "gross_income": breakdown.gross_income,
        "tax_amount": breakdown.tax_amount,
        "net_salary": breakdown.net_salary,
    }
    for field_name, value in stored.items():
        if not fits_numeric(value):
            raise AmountPrecisionError(field_name, value)


class PayrollLifecycleService:
    """
    Creates, finalizes, deletes and reads payrolls.

    Contract
    --------
    * Mutating methods return ``OperationResult``; callers inspect
      ``result.is_success`` and ``result.status``.
    * Read methods return ``OperationResult`` values wrapping DTOs; they
      never return ORM entities.

    Guarantees
    ----------
    * Session is committed only on success; otherwise rolled back.
    * Clock is injectable for deterministic testing; it supplies
      ``processed_at``, ``deleted_at`` and the tax year.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PayrollConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or PayrollConfig.with_defaults()

        self._payrolls = PayrollSelector(session)
        self._summaries = PayrollSummarySelector(session)
        self._currencies = CurrencySelector(session)
        self._resolver = TaxBracketResolver(lookup=TaxBracketSelector(session).table)

    # =========================================================================
    # Draft creation
    # =========================================================================

    def create_draft(
        self,
        employee_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
        currency_code: str,
        performed_by: UUID,
        overtime_hours: Amount = None,
        bonus: Amount = None,
        deductions: Amount = None,
        basic_salary_override: Amount = None,
    ) -> OperationResult[PayrollRecord]:
        """
        Calculate and persist a PENDING payroll for one employee and period.

        Returns the payroll as re-read from the store, with its items and
        tax snapshot.
        """
        with LogContext.bind(actor_id=performed_by, employee_id=employee_id):
            logger.info("payroll_draft_started", extra={
                "pay_period_start": pay_period_start,
                "pay_period_end": pay_period_end,
                "currency_code": currency_code,
            })
            try:
                validate_pay_period(pay_period_start, pay_period_end)
                employee = self._load_employee(employee_id)
                self._require_currency(currency_code)

                if self._payrolls.find_for_period(
                    employee_id, pay_period_start, pay_period_end,
                ) is not None:
                    raise DuplicatePayrollError(
                        str(employee_id), pay_period_start, pay_period_end,
                    )

                breakdown = calculate_payroll(
                    employee=employee,
                    payroll_input=PayrollInput(
                        currency_code=currency_code,
                        overtime_hours=overtime_hours,
                        bonus=bonus,
                        deductions=deductions,
                        basic_salary_override=basic_salary_override,
                    ),
                    resolve_bracket=self._resolver,
                    tax_year=self._clock.current_year,
                    parameters=self._config.calculation_parameters,
                )
                require_storable(breakdown)

                payroll_id = self._persist_draft(
                    employee_id, pay_period_start, pay_period_end,
                    currency_code, breakdown, performed_by,
                )
                self._session.commit()

            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                logger.info("payroll_draft_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                logger.error("payroll_draft_failed", exc_info=True)
                raise

            logger.info("payroll_draft_created", extra={
                "payroll_id": str(payroll_id),
                "gross_income": str(breakdown.gross_income),
                "tax_amount": str(breakdown.tax_amount),
                "net_salary": str(breakdown.net_salary),
                "item_count": len(breakdown.lines),
                "tax_snapshot": breakdown.tax_applied,
            })
            return OperationResult.ok(self._payrolls.find_by_id(payroll_id))

    def _load_employee(self, employee_id: UUID) -> EmployeeCompensation:
        employee = self._session.execute(
            select(Employee)
            .options(selectinload(Employee.position), selectinload(Employee.tax_config))
            .where(Employee.id == employee_id)
            .where(Employee.is_deleted.is_(False))
        ).scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id))

        position = employee.position
        if position is not None and position.is_deleted:
            position = None
        tax_config = employee.tax_config

        return EmployeeCompensation(
            employee_id=employee.id,
            salary_range_min=position.salary_range_min if position is not None else None,
            tax_exempt=tax_config.tax_exempt if tax_config is not None else False,
            tax_country=tax_config.tax_country if tax_config is not None else None,
        )

    def _require_currency(self, currency_code: str) -> None:
        if not self._currencies.is_usable(currency_code):
            raise CurrencyNotFoundError(currency_code)

    def _persist_draft(
        self,
        employee_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
        currency_code: str,
        breakdown: PayrollBreakdown,
        performed_by: UUID,
    ) -> UUID:
        """
        Write header, items and snapshot inside the current transaction.

        Raises:
            DuplicatePayrollError: the unique period index rejected the
                header (a concurrent draft won the race).
            PayrollPersistenceError: any other store failure.
        """
        payroll_id = uuid4()
        try:
            payroll = self._write_header(
                payroll_id, employee_id, pay_period_start, pay_period_end,
                currency_code, breakdown, performed_by,
            )
            self._write_items(payroll, breakdown, performed_by)
            if breakdown.tax_applied:
                self._write_tax_calculation(payroll, breakdown, performed_by)
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            if self._payrolls.find_for_period(
                employee_id, pay_period_start, pay_period_end,
            ) is not None:
                raise DuplicatePayrollError(
                    str(employee_id), pay_period_start, pay_period_end,
                ) from exc
            raise PayrollPersistenceError(
                "create payroll", str(employee_id), str(exc.orig),
            ) from exc
        except SQLAlchemyError as exc:
            raise PayrollPersistenceError(
                "create payroll", str(employee_id), str(exc),
            ) from exc
        return payroll_id

    def _write_header(
        self,
        payroll_id: UUID,
        employee_id: UUID,
        pay_period_start: date,
        pay_period_end: date,
        currency_code: str,
        breakdown: PayrollBreakdown,
        performed_by: UUID,
    ) -> Payroll:
        payroll = Payroll(
            id=payroll_id,
            employee_id=employee_id,
            currency_code=currency_code,
            pay_period_start=pay_period_start,
            pay_period_end=pay_period_end,
            basic_salary=breakdown.basic_salary,
            overtime_hrs=breakdown.overtime_hours,
            overtime_rate=breakdown.overtime_rate,
            bonus=breakdown.bonus,
            deductions=breakdown.deductions,
            net_salary=breakdown.net_salary,
            status=PayrollStatus.PENDING.value,
            created_by_id=performed_by,
        )
        self._session.add(payroll)
        self._session.flush()
        return payroll

    def _write_items(
        self,
        payroll: Payroll,
        breakdown: PayrollBreakdown,
        performed_by: UUID,
    ) -> None:
        for line_number, line in enumerate(breakdown.lines, start=1):
            self._session.add(PayrollItem(
                payroll_id=payroll.id,
                line_number=line_number,
                item_type=line.item_type.value,
                item_name=line.item_name,
                amount=line.amount,
                currency_code=payroll.currency_code,
                description=line.description,
                created_by_id=performed_by,
            ))
        self._session.flush()

    def _write_tax_calculation(
        self,
        payroll: Payroll,
        breakdown: PayrollBreakdown,
        performed_by: UUID,
    ) -> None:
        bracket = breakdown.tax_bracket
        self._session.add(TaxCalculation(
            payroll_id=payroll.id,
            employee_id=payroll.employee_id,
            tax_bracket_id=bracket.id,
            tax_period_start=payroll.pay_period_start,
            tax_period_end=payroll.pay_period_end,
            gross_income=breakdown.gross_income,
            taxable_income=breakdown.taxable_income,
            tax_amount=breakdown.tax_amount,
            tax_rate_used=breakdown.tax_rate_used,
            created_by_id=performed_by,
        ))
        self._session.flush()

    # =========================================================================
    # State transitions
    # =========================================================================

    def finalize(self, payroll_id: UUID, performed_by: UUID) -> OperationResult[PayrollRecord]:
        """PENDING -> PROCESSED, stamping ``processed_at``."""
        with LogContext.bind(actor_id=performed_by, payroll_id=payroll_id):
            try:
                payroll = self._lock_payroll(payroll_id)
                if payroll.status != PayrollStatus.PENDING.value:
                    raise InvalidPayrollStateError(
                        str(payroll_id), payroll.status,
                        f"Cannot finalize payroll with status: {payroll.status}",
                    )

                now = self._clock.now()
                self._update_pending(
                    payroll_id,
                    "finalize",
                    status=PayrollStatus.PROCESSED.value,
                    processed_at=now,
                    updated_by_id=performed_by,
                    updated_at=now,
                )
                self._session.commit()

            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                logger.info("payroll_finalize_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                logger.error("payroll_finalize_failed", exc_info=True)
                raise

            logger.info("payroll_finalized", extra={"processed_at": now})
            return OperationResult.ok(self._payrolls.find_by_id(payroll_id))

    def delete(self, payroll_id: UUID, performed_by: UUID) -> OperationResult[UUID]:
        """
        Soft-delete a PENDING payroll.

        Items and the tax snapshot are left in place; they drop out of every
        query through their parent's flag.
        """
        with LogContext.bind(actor_id=performed_by, payroll_id=payroll_id):
            try:
                payroll = self._lock_payroll(payroll_id)
                if payroll.status != PayrollStatus.PENDING.value:
                    raise InvalidPayrollStateError(
                        str(payroll_id), payroll.status,
                        "Only PENDING payrolls can be deleted",
                    )

                now = self._clock.now()
                self._update_pending(
                    payroll_id,
                    "delete",
                    is_deleted=True,
                    deleted_at=now,
                    deleted_by_id=performed_by,
                    updated_by_id=performed_by,
                    updated_at=now,
                )
                self._session.commit()

            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                logger.info("payroll_delete_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                logger.error("payroll_delete_failed", exc_info=True)
                raise

            logger.info("payroll_deleted", extra={"deleted_at": now})
            return OperationResult.ok(payroll_id)

    def _lock_payroll(self, payroll_id: UUID) -> Payroll:
        """Load a non-deleted payroll with a row lock (no-op on SQLite)."""
        payroll = self._session.execute(
            select(Payroll)
            .where(Payroll.id == payroll_id)
            .where(Payroll.is_deleted.is_(False))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payroll is None:
            raise PayrollNotFoundError(str(payroll_id))
        return payroll

    def _update_pending(self, payroll_id: UUID, action: str, **values) -> None:
        """
        Apply ``values`` only if the payroll is still PENDING and not deleted.

        Raises the matching business error when another writer got there
        first.
        """
        result = self._session.execute(
            update(Payroll)
            .where(Payroll.id == payroll_id)
            .where(Payroll.status == PayrollStatus.PENDING.value)
            .where(Payroll.is_deleted.is_(False))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        current = self._session.execute(
            select(Payroll.status, Payroll.is_deleted).where(Payroll.id == payroll_id)
        ).one_or_none()
        if current is None or current.is_deleted:
            raise PayrollNotFoundError(str(payroll_id))
        if action == "finalize":
            message = f"Cannot finalize payroll with status: {current.status}"
        else:
            message = "Only PENDING payrolls can be deleted"
        raise InvalidPayrollStateError(str(payroll_id), current.status, message)

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_id(self, payroll_id: UUID) -> OperationResult[PayrollRecord]:
        record = self._payrolls.find_by_id(payroll_id)
        if record is None:
            return OperationResult.from_error(PayrollNotFoundError(str(payroll_id)))
        return OperationResult.ok(record)

    def find_all(
        self,
        employee_id: UUID | None = None,
        status: PayrollStatus | str | None = None,
        year: int | None = None,
        month: int | None = None,
        department_id: UUID | None = None,
    ) -> OperationResult[list[PayrollRecord]]:
        """Non-deleted payrolls, newest first.  ``month`` needs ``year``."""
        try:
            filters = build_payroll_filter(employee_id, status, year, month, department_id)
        except PayrollValidationError as exc:
            return OperationResult.from_error(exc)
        return OperationResult.ok(self._payrolls.find_all(filters))

    def list_payrolls_page(
        self,
        page: int = 1,
        limit: int | None = None,
        employee_id: UUID | None = None,
        status: PayrollStatus | str | None = None,
        year: int | None = None,
        month: int | None = None,
        department_id: UUID | None = None,
    ) -> OperationResult[PayrollPage]:
        """One page of non-deleted payrolls with pagination metadata."""
        limit = limit if limit is not None else self._config.default_page_size
        try:
            if page < 1:
                raise PayrollValidationError(f"page must be at least 1, got {page}")
            if not 1 <= limit <= self._config.max_page_size:
                raise PayrollValidationError(
                    f"limit must be between 1 and {self._config.max_page_size}, got {limit}"
                )
            filters = build_payroll_filter(employee_id, status, year, month, department_id)
        except PayrollValidationError as exc:
            return OperationResult.from_error(exc)

        return OperationResult.ok(self._payrolls.page(page, limit, filters))

    def get_summary(
        self,
        year: int | None = None,
        month: int | None = None,
        department_id: UUID | None = None,
    ) -> OperationResult[PayrollSummary]:
        try:
            filters = build_payroll_filter(year=year, month=month, department_id=department_id)
        except PayrollValidationError as exc:
            return OperationResult.from_error(exc)
        return OperationResult.ok(self._summaries.get_summary(filters))

    def get_employee_payslips(
        self,
        employee_id: UUID,
        year: int | None = None,
    ) -> OperationResult[PayslipHistory]:
        """
        Payslip history for one employee.

        Year-to-date totals cover ``year`` when given, else the clock's
        current year.
        """
        exists = self._session.execute(
            select(Employee.id)
            .where(Employee.id == employee_id)
            .where(Employee.is_deleted.is_(False))
        ).scalar_one_or_none()
        if exists is None:
            return OperationResult.from_error(EmployeeNotFoundError(str(employee_id)))

        ytd_year = year if year is not None else self._clock.current_year
        return OperationResult.ok(
            self._payrolls.employee_payslips(employee_id, year, ytd_year)
        )
