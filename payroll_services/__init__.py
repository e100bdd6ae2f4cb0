"""
payroll_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure payroll engines
    (payroll_engines/) with database sessions and the injected clock.  This
    is the only layer that owns transaction boundaries.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

        payroll_services/ -> payroll_engines/  (allowed)
        payroll_services/ -> payroll_kernel/   (allowed)
        payroll_engines/  -> payroll_services/ (FORBIDDEN)
        payroll_kernel/   -> payroll_services/ (FORBIDDEN)

Failure modes:
    - Business failures are returned as ``OperationResult`` values.
    - Persistence faults propagate as ``PayrollPersistenceError``.
"""

from payroll_services.bulk_generation import (
    BulkGenerationResult,
    BulkPayrollGenerator,
    FailedEmployee,
    SkippedEmployee,
)
from payroll_services.config import PayrollConfig, load_payroll_config
from payroll_services.payroll_lifecycle import PayrollLifecycleService
from payroll_services.reference_data import ReferenceDataService
from payroll_services.results import OperationResult, OperationStatus

__all__ = [
    "BulkGenerationResult",
    "BulkPayrollGenerator",
    "FailedEmployee",
    "SkippedEmployee",
    "PayrollConfig",
    "load_payroll_config",
    "PayrollLifecycleService",
    "ReferenceDataService",
    "OperationResult",
    "OperationStatus",
]
