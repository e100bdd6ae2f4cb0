"""Database layer - engine, base classes and exact decimal types."""

from payroll_kernel.db.base import UUID, Base, SoftDeleteMixin, TrackedBase, UUIDString
from payroll_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from payroll_kernel.db.types import CurrencyCode, ExactDecimal, Money, Rate

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "SoftDeleteMixin",
    "UUIDString",
    "UUID",
    "ExactDecimal",
    "Money",
    "Rate",
    "CurrencyCode",
]
