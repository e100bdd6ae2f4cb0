"""
Module: payroll_kernel.models.currency
Responsibility: ORM persistence for currencies payrolls may be issued in.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``code`` is a unique ISO 4217 code (validated by the service layer).
    - A payroll may only reference a currency that is not deleted and is
      active.  A deleted code is reactivated in place rather than inserted
      again, so the code stays unique across the table.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import SoftDeleteMixin, TrackedBase


class Currency(SoftDeleteMixin, TrackedBase):
    """A currency with display metadata."""

    __tablename__ = "currencies"

    __table_args__ = (
        UniqueConstraint("code", name="uq_currency_code"),
    )

    code: Mapped[str] = mapped_column(String(3), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(10), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Currency {self.code}>"
