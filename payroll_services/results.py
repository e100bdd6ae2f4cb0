"""
Operation results for the payroll services.

Business-rule failures (validation, not found, invalid state, already
exists) are returned as ``OperationResult`` values so callers branch on
``result.status`` instead of catching exceptions.  Faults (the store failed,
an unexpected error) are never turned into results; they propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from payroll_kernel.exceptions import (
    ConflictError,
    InvalidPayrollStateError,
    NotFoundError,
    PayrollKernelError,
    PayrollValidationError,
)

T = TypeVar("T")


class OperationStatus(str, Enum):
    """Outcome category of a payroll operation."""

    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Result of a payroll operation."""

    status: OperationStatus
    value: T | None = None
    message: str | None = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.OK

    @classmethod
    def ok(cls, value: T | None = None) -> OperationResult[T]:
        return cls(status=OperationStatus.OK, value=value)

    @classmethod
    def fail(
        cls,
        status: OperationStatus,
        message: str,
        error_code: str | None = None,
    ) -> OperationResult[T]:
        if status == OperationStatus.OK:
            raise ValueError("fail() requires a failure status")
        return cls(status=status, message=message, error_code=error_code)

    @classmethod
    def from_error(cls, error: PayrollKernelError) -> OperationResult[T]:
        """
        Map a business exception to a failure result.

        Raises:
            TypeError: ``error`` is not a business category (e.g. a
                persistence fault), which must propagate instead.
        """
        status = status_for(error)
        if status is None:
            raise TypeError(f"{type(error).__name__} is not a business failure")
        return cls.fail(status, str(error), error.code)


def status_for(error: PayrollKernelError) -> OperationStatus | None:
    """Result status for a business exception, None for faults."""
    if isinstance(error, PayrollValidationError):
        return OperationStatus.VALIDATION_ERROR
    if isinstance(error, NotFoundError):
        return OperationStatus.NOT_FOUND
    if isinstance(error, InvalidPayrollStateError):
        return OperationStatus.INVALID_STATE
    if isinstance(error, ConflictError):
        return OperationStatus.ALREADY_EXISTS
    return None


BUSINESS_ERRORS = (
    PayrollValidationError,
    NotFoundError,
    InvalidPayrollStateError,
    ConflictError,
)
