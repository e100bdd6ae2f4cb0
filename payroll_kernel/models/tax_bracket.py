"""
Module: payroll_kernel.models.tax_bracket
Responsibility: ORM persistence for progressive tax bracket tables.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - A table is the set of non-deleted brackets sharing (country_code,
      currency_code, tax_year).  ``min_amount`` is inclusive and
      ``max_amount`` exclusive.
    - Bracket names are unique within a table among non-deleted rows.
    - Ranges within a table must not overlap.  Checked by the reference data
      service at creation time, not by the database.
    - ``tax_rate`` is a fraction stored with 18 decimal places.

Audit relevance:
    Brackets are soft-deleted, never removed, so every TaxCalculation keeps
    a resolvable reference to the bracket it used.
"""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import SoftDeleteMixin, TrackedBase
from payroll_kernel.db.types import MONEY_PRECISION, RATE_SCALE, ExactDecimal


class TaxBracket(SoftDeleteMixin, TrackedBase):
    """
    One bracket of a progressive tax table.

    Contract:
        Tax for a gross income ``g`` with ``min_amount <= g < max_amount`` is
        ``max(g * tax_rate - fixed_amount, 0)``.
    """

    __tablename__ = "tax_brackets"

    __table_args__ = (
        Index(
            "uq_tax_bracket_name_active",
            "country_code", "currency_code", "tax_year", "bracket_name",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
        Index(
            "idx_tax_bracket_lookup",
            "country_code", "currency_code", "tax_year",
        ),
    )

    country_code: Mapped[str] = mapped_column(String(3), nullable=False)
    currency_code: Mapped[str] = mapped_column(
        String(3), ForeignKey("currencies.code"), nullable=False,
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    bracket_name: Mapped[str] = mapped_column(String(100), nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(nullable=False)
    max_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        ExactDecimal(MONEY_PRECISION, RATE_SCALE), nullable=False,
    )
    fixed_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<TaxBracket {self.country_code}/{self.currency_code}/{self.tax_year} "
            f"{self.bracket_name}: [{self.min_amount}, {self.max_amount}) "
            f"@ {self.tax_rate}>"
        )
