"""
Module: payroll_kernel.models.payroll
Responsibility: ORM persistence for generated payrolls: the Payroll header,
    its PayrollItem lines and the TaxCalculation audit snapshot.
Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and domain/dtos.py only.

Invariants enforced:
    - pay_period_end > pay_period_start (ck_payroll_period_order).
    - One non-deleted payroll per (employee, pay_period_start,
      pay_period_end) (uq_payroll_employee_period_active).  Soft-deleted
      drafts do not block regeneration.
    - Items and the snapshot are written once, in the same transaction as
      the header, and never updated afterwards.
    - At most one TaxCalculation per payroll (uq_tax_calculation_payroll).
    - Soft delete of a payroll does not touch its items or snapshot.

Failure modes:
    - IntegrityError on a duplicate active period for the same employee.
    - IntegrityError on a period whose end is not after its start.

Audit relevance:
    created_by_id records who generated the draft; updated_by_id who
    finalized it; deleted_by_id who deleted it.  The TaxCalculation row pins
    the bracket and rate used, independent of later bracket edits.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from payroll_kernel.db.types import MONEY_PRECISION, RATE_SCALE, ExactDecimal
from payroll_kernel.domain.dtos import PayrollStatus


class Payroll(SoftDeleteMixin, TrackedBase):
    """
    Payroll header for one employee and one pay period.

    Contract:
        Created PENDING.  finalize moves it to PROCESSED and stamps
        processed_at.  Only PENDING payrolls may be soft-deleted.

    Guarantees:
        - ``deductions`` holds the non-tax deductions; tax lives in the
          "Tax" item and the snapshot.
        - ``net_salary == basic_salary + overtime_rate * overtime_hrs + bonus
          - tax - deductions``.
    """

    __tablename__ = "payrolls"

    __table_args__ = (
        CheckConstraint(
            "pay_period_end > pay_period_start",
            name="ck_payroll_period_order",
        ),
        Index(
            "uq_payroll_employee_period_active",
            "employee_id", "pay_period_start", "pay_period_end",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
        Index("idx_payroll_status", "status"),
        Index("idx_payroll_period_start", "pay_period_start"),
    )

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False,
    )
    currency_code: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code"), nullable=False,
    )
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_hrs: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_rate: Mapped[Decimal] = mapped_column(
        ExactDecimal(MONEY_PRECISION, RATE_SCALE), nullable=False, default=Decimal("0"),
    )
    bonus: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_salary: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayrollStatus.PENDING.value,
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    items: Mapped[list["PayrollItem"]] = relationship(
        back_populates="payroll",
        order_by="PayrollItem.line_number",
        lazy="selectin",
    )
    tax_calculation: Mapped["TaxCalculation | None"] = relationship(
        back_populates="payroll",
        uselist=False,
        lazy="selectin",
    )
    employee: Mapped["Employee"] = relationship()  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Payroll {self.id} employee={self.employee_id} "
            f"{self.pay_period_start}..{self.pay_period_end} {self.status}>"
        )


class PayrollItem(TrackedBase):
    """
    One earning or deduction line of a payroll.

    Guarantees:
        - ``amount`` is strictly positive; zero lines are never written.
        - ``line_number`` preserves generation order.
    """

    __tablename__ = "payroll_items"

    __table_args__ = (
        UniqueConstraint("payroll_id", "line_number", name="uq_payroll_item_line"),
        CheckConstraint("item_type IN ('EARNING', 'DEDUCTION')", name="ck_payroll_item_type"),
    )

    payroll_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payrolls.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    payroll: Mapped["Payroll"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<PayrollItem {self.item_type} {self.item_name} {self.amount}>"


class TaxCalculation(TrackedBase):
    """
    Immutable snapshot of how tax was computed for a payroll.

    Contract:
        Written only when tax was applied: the employee is not exempt and a
        bracket matched the gross income.  ``taxable_income`` equals
        ``gross_income``.
    """

    __tablename__ = "tax_calculations"

    __table_args__ = (
        UniqueConstraint("payroll_id", name="uq_tax_calculation_payroll"),
        Index("idx_tax_calculation_employee", "employee_id"),
    )

    payroll_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payrolls.id"), nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False,
    )
    tax_bracket_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tax_brackets.id"), nullable=False,
    )
    tax_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    tax_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    gross_income: Mapped[Decimal] = mapped_column(nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate_used: Mapped[Decimal] = mapped_column(
        ExactDecimal(MONEY_PRECISION, RATE_SCALE), nullable=False,
    )

    payroll: Mapped["Payroll"] = relationship(back_populates="tax_calculation")
