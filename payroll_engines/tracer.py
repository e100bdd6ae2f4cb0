"""
payroll_engines.tracer -- ``payroll_engine_trace`` records for engine calls.

Each call to a decorated engine emits one DEBUG record carrying the engine
name and version, how long the call took, whether it returned or raised,
and a fingerprint of the keyword inputs named by the decorator.  Two calls
with equal inputs (``Decimal("10")`` and ``"10.00"`` included) share a
fingerprint, so a draft can be matched to the calculation that produced it.

The decorator reads its arguments and logs; engines stay free of I/O.

Usage:
    from payroll_engines.tracer import traced_engine

    @traced_engine("payroll_calculation", "1.0", fingerprint_fields=("payroll_input",))
    def calculate_payroll(*, employee, payroll_input, tax_year, ...):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "payroll_engine_trace"


def _plain(value: Any) -> Any:
    """Reduce ``value`` to JSON-ready data with one spelling per number."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (Decimal, int, str)):
        try:
            number = Decimal(value) if not isinstance(value, Decimal) else value
        except InvalidOperation:
            return value
        if not number.is_finite():
            return str(number)
        text = format(number, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, UUID):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """16 hex chars of SHA-256 over the named inputs; absent ones count as null."""
    selected = {name: _plain(kwargs.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine so every call, returned or raised, is traced."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace: dict[str, Any] = {
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields else ""
                ),
            }
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace["outcome"] = "raised"
                trace["error_type"] = type(exc).__name__
                raise
            else:
                trace["outcome"] = "returned"
                return result
            finally:
                trace["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
                _logger.debug(TRACE_MESSAGE, extra=trace)

        return wrapper

    return decorator
