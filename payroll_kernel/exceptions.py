"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll operations have three kinds of expected failure (bad input, missing
reference data, illegal state transition) and one kind of fault (the store
could not complete an atomic write).  Callers must be able to tell them
apart without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Inside the engine these exceptions are raised where the rule is checked.
The service layer (``payroll_services``) catches the business categories and
turns them into ``OperationResult`` values; only faults propagate.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- PayrollValidationError          -> OperationStatus.VALIDATION_ERROR
    |   +-- InvalidPayPeriodError
    |   +-- MissingBasicSalaryError
    |   +-- InvalidCurrencyCodeError
    |   +-- TaxBracketOverlapError
    |
    +-- NotFoundError                   -> OperationStatus.NOT_FOUND
    |   +-- EmployeeNotFoundError
    |   +-- CurrencyNotFoundError
    |   +-- PayrollNotFoundError
    |   +-- TaxBracketNotFoundError
    |
    +-- InvalidPayrollStateError        -> OperationStatus.INVALID_STATE
    |
    +-- ConflictError                   -> OperationStatus.ALREADY_EXISTS
    |   +-- DuplicatePayrollError
    |   +-- CurrencyAlreadyExistsError
    |   +-- DuplicateTaxBracketError
    |
    +-- PayrollPersistenceError         -> fault, propagates

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|-----------------------------------
Validation   | INVALID_PAY_PERIOD         | period end not after period start
             | MISSING_BASIC_SALARY       | no override and no position salary
             | INVALID_CURRENCY_CODE      | not a valid ISO 4217 code
             | TAX_BRACKET_OVERLAP        | bracket range collides with another
             | PAYROLL_VALIDATION_ERROR   | any other malformed input
-------------|----------------------------|-----------------------------------
Not found    | EMPLOYEE_NOT_FOUND         | employee missing or soft-deleted
             | CURRENCY_NOT_FOUND         | currency missing or soft-deleted
             | PAYROLL_NOT_FOUND          | payroll missing or soft-deleted
             | TAX_BRACKET_NOT_FOUND      | bracket missing or soft-deleted
-------------|----------------------------|-----------------------------------
State        | INVALID_PAYROLL_STATE      | finalize/delete from non-PENDING
-------------|----------------------------|-----------------------------------
Conflict     | DUPLICATE_PAYROLL          | payroll exists for employee+period
             | CURRENCY_ALREADY_EXISTS    | active currency code already exists
             | DUPLICATE_TAX_BRACKET      | bracket name taken in the same table
-------------|----------------------------|-----------------------------------
Persistence  | PAYROLL_PERSISTENCE_ERROR  | atomic multi-row write failed
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Validation


class PayrollValidationError(PayrollKernelError):
    """Input was rejected before any persistence happened."""

    code: str = "PAYROLL_VALIDATION_ERROR"


class InvalidPayPeriodError(PayrollValidationError):
    """Pay period end is not strictly after its start."""

    code: str = "INVALID_PAY_PERIOD"

    def __init__(self, period_start, period_end):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__("Pay period end must be after start date")


class MissingBasicSalaryError(PayrollValidationError):
    """Neither an override nor a position salary floor is available."""

    code: str = "MISSING_BASIC_SALARY"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(
            f"Employee {employee_id} has no position salary and no basic salary override"
        )


class InvalidCurrencyCodeError(PayrollValidationError):
    """Currency code is not a recognized ISO 4217 code."""

    code: str = "INVALID_CURRENCY_CODE"

    def __init__(self, currency_code: str):
        self.currency_code = currency_code
        super().__init__(f"Invalid ISO 4217 currency code: {currency_code}")


class TaxBracketOverlapError(PayrollValidationError):
    """New bracket range intersects an existing bracket of the same table."""

    code: str = "TAX_BRACKET_OVERLAP"

    def __init__(self, bracket_name: str, existing_bracket_name: str):
        self.bracket_name = bracket_name
        self.existing_bracket_name = existing_bracket_name
        super().__init__(
            f"Tax bracket '{bracket_name}' overlaps existing bracket "
            f"'{existing_bracket_name}'"
        )


class AmountPrecisionError(PayrollValidationError):
    """A calculated amount has more digits than the money columns hold."""

    code: str = "AMOUNT_PRECISION_EXCEEDED"

    def __init__(self, field_name: str, value):
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"{field_name} {value} cannot be stored without rounding"
        )


# Not found


class NotFoundError(PayrollKernelError):
    """Referenced record does not exist or is soft-deleted."""

    code: str = "NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    """Employee was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__("Employee not found")


class CurrencyNotFoundError(NotFoundError):
    """Currency was not found or is not active."""

    code: str = "CURRENCY_NOT_FOUND"

    def __init__(self, currency_code: str):
        self.currency_code = currency_code
        super().__init__("Invalid currency code")


class PayrollNotFoundError(NotFoundError):
    """Payroll was not found."""

    code: str = "PAYROLL_NOT_FOUND"

    def __init__(self, payroll_id: str):
        self.payroll_id = payroll_id
        super().__init__("Payroll not found")


class TaxBracketNotFoundError(NotFoundError):
    """Tax bracket was not found."""

    code: str = "TAX_BRACKET_NOT_FOUND"

    def __init__(self, bracket_id: str):
        self.bracket_id = bracket_id
        super().__init__("Tax bracket not found")


# State


class InvalidPayrollStateError(PayrollKernelError):
    """
    Transition is not permitted from the payroll's current status.

    Only PENDING payrolls can be finalized or deleted.
    """

    code: str = "INVALID_PAYROLL_STATE"

    def __init__(self, payroll_id: str, current_status: str, message: str):
        self.payroll_id = payroll_id
        self.current_status = current_status
        super().__init__(message)


# Conflict


class ConflictError(PayrollKernelError):
    """Operation would duplicate an existing record."""

    code: str = "CONFLICT"


class DuplicatePayrollError(ConflictError):
    """A non-deleted payroll already exists for the employee and period."""

    code: str = "DUPLICATE_PAYROLL"

    def __init__(self, employee_id: str, period_start, period_end):
        self.employee_id = employee_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__("Payroll already exists for this period")


class CurrencyAlreadyExistsError(ConflictError):
    """An active currency with this code already exists."""

    code: str = "CURRENCY_ALREADY_EXISTS"

    def __init__(self, currency_code: str):
        self.currency_code = currency_code
        super().__init__("Currency code already exists")


class DuplicateTaxBracketError(ConflictError):
    """A non-deleted bracket with this name already exists in the table."""

    code: str = "DUPLICATE_TAX_BRACKET"

    def __init__(self, bracket_name: str, country_code: str, currency_code: str, tax_year: int):
        self.bracket_name = bracket_name
        self.country_code = country_code
        self.currency_code = currency_code
        self.tax_year = tax_year
        super().__init__(
            f"Tax bracket '{bracket_name}' already exists for "
            f"{country_code}/{currency_code}/{tax_year}"
        )


# Persistence


class PayrollPersistenceError(PayrollKernelError):
    """
    The atomic payroll write failed and was rolled back.

    This is a fault, not a business outcome: it propagates to the caller.
    """

    code: str = "PAYROLL_PERSISTENCE_ERROR"

    def __init__(self, operation: str, employee_id: str | None, reason: str):
        self.operation = operation
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Failed to {operation}: {reason}")
