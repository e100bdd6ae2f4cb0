"""
Module: payroll_kernel.models.organization
Responsibility: ORM persistence for the organization records that payroll
    reads: departments, positions, employees and employee tax configuration.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/dtos.py only.

Invariants enforced:
    - Read-only to the payroll engine: these rows are maintained by the HR
      workflow.  Payroll only selects active, non-deleted employees.
    - ``Position.salary_range_min`` is the default basic salary.
    - At most one tax configuration per employee.

Audit relevance:
    The employee's position salary and tax exemption at generation time are
    captured on the payroll itself (basic_salary) and on the tax snapshot, so
    later edits to these rows never change a generated payroll.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from payroll_kernel.domain.dtos import EmploymentStatus


class Department(SoftDeleteMixin, TrackedBase):
    """An organizational unit; used for bulk generation and summaries."""

    __tablename__ = "departments"

    __table_args__ = (
        UniqueConstraint("department_name", name="uq_department_name"),
    )

    department_name: Mapped[str] = mapped_column(String(100), nullable=False)

    employees: Mapped[list["Employee"]] = relationship(back_populates="department")

    def __repr__(self) -> str:
        return f"<Department {self.department_name}>"


class Position(SoftDeleteMixin, TrackedBase):
    """
    A job position with its salary range.

    Guarantees:
        - ``salary_range_min`` is Decimal (Numeric(38,9)).
    """

    __tablename__ = "positions"

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=True,
    )
    salary_range_min: Mapped[Decimal] = mapped_column(nullable=False)
    salary_range_max: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Position {self.title} ({self.salary_range_min})>"


class Employee(SoftDeleteMixin, TrackedBase):
    """
    An employee as seen by payroll.

    Contract:
        Eligible for bulk generation only when not deleted, ``is_active`` and
        ``employment_status == ACTIVE``.  Single-draft creation only requires
        the row to exist and not be deleted.
    """

    __tablename__ = "employees"

    __table_args__ = (
        UniqueConstraint("employee_number", name="uq_employee_number"),
        Index("idx_employee_department", "department_id"),
        Index("idx_employee_active", "is_active", "employment_status"),
    )

    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=True,
    )
    position_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("positions.id"), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    employment_status: Mapped[str] = mapped_column(
        String(20), default=EmploymentStatus.ACTIVE.value, nullable=False,
    )

    department: Mapped["Department | None"] = relationship(back_populates="employees")
    position: Mapped["Position | None"] = relationship()
    tax_config: Mapped["EmployeeTaxConfig | None"] = relationship(
        back_populates="employee", uselist=False,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Employee {self.employee_number}: {self.full_name}>"


class EmployeeTaxConfig(TrackedBase):
    """Per-employee tax settings: exemption flag and tax country."""

    __tablename__ = "employee_tax_configs"

    __table_args__ = (
        UniqueConstraint("employee_id", name="uq_employee_tax_config_employee"),
    )

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False,
    )
    tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tax_country: Mapped[str | None] = mapped_column(String(3), nullable=True)

    employee: Mapped["Employee"] = relationship(back_populates="tax_config")
