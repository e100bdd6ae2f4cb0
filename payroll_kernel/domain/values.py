"""
Values -- Exact decimal helpers for payroll arithmetic.

Responsibility:
    Normalizes every money and rate input to ``decimal.Decimal`` and provides
    the local decimal context in which all payroll arithmetic runs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Binary floats are rejected at the boundary, never converted.
    - Arithmetic runs with 38 significant digits, the same precision as the
      ``NUMERIC(38, 18)`` storage columns, so ``salary / 160`` keeps every
      digit that the following multiplications need.
    - Nothing here rounds.  Display rounding lives in ``db.types.round_money``.

Failure modes:
    - TypeError for float or any other unsupported input type.
    - ValueError for strings that are not decimal literals, or for NaN and
      infinities.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Context, Decimal, InvalidOperation, localcontext
from typing import ContextManager

from payroll_kernel.db.types import MONEY_PRECISION

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str, field_name: str = "amount") -> Decimal:
    """
    Normalize ``value`` to a finite Decimal.

    Accepts Decimal, int and decimal strings.  ``bool`` and ``float`` are
    rejected: a float has already lost the exact value it was meant to carry.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"{field_name} must be Decimal, int or str, got {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation as exc:
            raise ValueError(f"{field_name} is not a decimal number: {value!r}") from exc
    else:
        raise TypeError(
            f"{field_name} must be Decimal, int or str, got {type(value).__name__}"
        )
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def optional_decimal(
    value: Decimal | int | str | None,
    field_name: str = "amount",
    default: Decimal = ZERO,
) -> Decimal:
    """``to_decimal`` that maps None to ``default``."""
    if value is None:
        return default
    return to_decimal(value, field_name)


def money_context() -> ContextManager[Context]:
    """Local decimal context used for every payroll computation."""
    return localcontext(prec=MONEY_PRECISION)


def sum_decimals(values: Iterable[Decimal]) -> Decimal:
    """Exact sum, ``Decimal('0')`` for an empty iterable."""
    with money_context():
        total = ZERO
        for value in values:
            total += value
        return total
