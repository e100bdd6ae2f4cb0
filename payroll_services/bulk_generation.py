"""
BulkPayrollGenerator -- draft payrolls for many employees in one call.

Contract:
    ``generate_bulk()`` resolves the target employees and calls
    ``PayrollLifecycleService.create_draft()`` once per employee.  Each draft
    is its own transaction; there is no rollback across employees.

Architecture: payroll_services.  Imports kernel models/selectors and the
    lifecycle service.

Invariants enforced:
    - One employee's failure never aborts the batch.
    - An existing payroll for the period is a skip, not a failure.
    - Faults (persistence errors, unexpected exceptions) for one employee are
      recorded in ``failed``; the session is rolled back before the next one.
    - Period and currency are validated once, before the loop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import EmploymentStatus, PayrollRecord
from payroll_kernel.exceptions import (
    CurrencyNotFoundError,
    PayrollKernelError,
    PayrollValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.organization import Employee
from payroll_kernel.selectors.payroll_selector import PayrollSelector
from payroll_kernel.selectors.reference_selector import CurrencySelector
from payroll_services.config import PayrollConfig
from payroll_services.payroll_lifecycle import PayrollLifecycleService, validate_pay_period
from payroll_services.results import BUSINESS_ERRORS, OperationResult, OperationStatus

logger = get_logger("services.bulk_generation")

ALREADY_EXISTS_REASON = "Payroll already exists for this period"
UNHANDLED_ERROR_CODE = "UNHANDLED_EXCEPTION"


@dataclass(frozen=True)
class SkippedEmployee:
    employee_id: UUID
    employee_name: str
    reason: str


@dataclass(frozen=True)
class FailedEmployee:
    employee_id: UUID
    employee_name: str
    error: str
    error_code: str | None = None


@dataclass(frozen=True)
class BulkGenerationResult:
    """Immutable outcome of one bulk generation run."""

    batch_id: UUID
    generated: tuple[PayrollRecord, ...] = ()
    skipped: tuple[SkippedEmployee, ...] = ()
    failed: tuple[FailedEmployee, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def generated_ids(self) -> tuple[UUID, ...]:
        return tuple(p.id for p in self.generated)

    @property
    def generated_count(self) -> int:
        return len(self.generated)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.generated_count + self.skipped_count + self.failed_count


@dataclass
class _Outcomes:
    generated: list[PayrollRecord] = field(default_factory=list)
    skipped: list[SkippedEmployee] = field(default_factory=list)
    failed: list[FailedEmployee] = field(default_factory=list)


class BulkPayrollGenerator:
    """
    Generate PENDING drafts for a department or an explicit employee list.

    Contract:
        - ``employee_ids`` takes precedence over ``department_id``; with
          neither, every eligible employee is targeted.
        - Eligible means not deleted, ``is_active`` and employment status
          ACTIVE.
        - Drafts are created with zero overtime, bonus and deductions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PayrollConfig | None = None,
        lifecycle: PayrollLifecycleService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._lifecycle = lifecycle or PayrollLifecycleService(
            session, clock=self._clock, config=config,
        )
        self._payrolls = PayrollSelector(session)
        self._currencies = CurrencySelector(session)

    def generate_bulk(
        self,
        pay_period_start: date,
        pay_period_end: date,
        currency_code: str,
        performed_by: UUID,
        department_id: UUID | None = None,
        employee_ids: list[UUID] | None = None,
    ) -> OperationResult[BulkGenerationResult]:
        batch_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(actor_id=performed_by, batch_id=batch_id):
            try:
                validate_pay_period(pay_period_start, pay_period_end)
                if not self._currencies.is_usable(currency_code):
                    raise CurrencyNotFoundError(currency_code)
                targets = self._target_employees(department_id, employee_ids)
                if not targets:
                    raise PayrollValidationError("No active employees found matching criteria")
            except BUSINESS_ERRORS as exc:
                self._session.rollback()
                logger.info("bulk_generation_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                })
                return OperationResult.from_error(exc)
            # Release the read transaction before per-employee transactions start
            self._session.rollback()

            logger.info("bulk_generation_started", extra={
                "pay_period_start": pay_period_start,
                "pay_period_end": pay_period_end,
                "currency_code": currency_code,
                "department_id": str(department_id) if department_id else None,
                "target_count": len(targets),
            })

            outcomes = _Outcomes()
            for employee_id, employee_name in targets:
                self._generate_one(
                    outcomes, employee_id, employee_name,
                    pay_period_start, pay_period_end, currency_code, performed_by,
                )

            result = BulkGenerationResult(
                batch_id=batch_id,
                generated=tuple(outcomes.generated),
                skipped=tuple(outcomes.skipped),
                failed=tuple(outcomes.failed),
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )
            logger.info("bulk_generation_completed", extra={
                "generated": result.generated_count,
                "skipped": result.skipped_count,
                "failed": result.failed_count,
                "duration_ms": result.duration_ms,
            })
            return OperationResult.ok(result)

    def _target_employees(
        self,
        department_id: UUID | None,
        employee_ids: list[UUID] | None,
    ) -> list[tuple[UUID, str]]:
        query = (
            select(Employee)
            .where(Employee.is_deleted.is_(False))
            .where(Employee.is_active.is_(True))
            .where(Employee.employment_status == EmploymentStatus.ACTIVE.value)
        )
        if employee_ids:
            query = query.where(Employee.id.in_(employee_ids))
        elif department_id is not None:
            query = query.where(Employee.department_id == department_id)

        employees = self._session.execute(
            query.order_by(Employee.employee_number)
        ).scalars().all()
        return [(e.id, e.full_name) for e in employees]

    def _generate_one(
        self,
        outcomes: _Outcomes,
        employee_id: UUID,
        employee_name: str,
        pay_period_start: date,
        pay_period_end: date,
        currency_code: str,
        performed_by: UUID,
    ) -> None:
        try:
            existing = self._payrolls.find_for_period(
                employee_id, pay_period_start, pay_period_end,
            )
            if existing is not None:
                self._session.rollback()
                outcomes.skipped.append(
                    SkippedEmployee(employee_id, employee_name, ALREADY_EXISTS_REASON)
                )
                return

            result = self._lifecycle.create_draft(
                employee_id=employee_id,
                pay_period_start=pay_period_start,
                pay_period_end=pay_period_end,
                currency_code=currency_code,
                performed_by=performed_by,
            )
        except Exception as exc:
            self._session.rollback()
            logger.exception("bulk_generation_employee_failed", extra={
                "employee_id": str(employee_id),
            })
            outcomes.failed.append(FailedEmployee(
                employee_id, employee_name, str(exc),
                exc.code if isinstance(exc, PayrollKernelError) else UNHANDLED_ERROR_CODE,
            ))
            return

        if result.is_success:
            outcomes.generated.append(result.value)
        elif result.status == OperationStatus.ALREADY_EXISTS:
            outcomes.skipped.append(
                SkippedEmployee(employee_id, employee_name, result.message)
            )
        else:
            outcomes.failed.append(FailedEmployee(
                employee_id, employee_name, result.message, result.error_code,
            ))
