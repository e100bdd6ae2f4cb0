"""
Payroll Configuration Schema.

Defines the structure and defaults for payroll generation settings.
Values come from ``PayrollConfig.with_defaults()``, a dict
(``PayrollConfig.from_dict``) or a YAML file (``load_payroll_config``).

Example YAML::

    monthly_working_hours: 160
    overtime_multiplier: "1.5"
    default_tax_country: KH
    default_page_size: 20
    max_page_size: 100
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml

from payroll_engines.payroll_calculation import (
    DEFAULT_TAX_COUNTRY,
    MONTHLY_WORKING_HOURS,
    OVERTIME_MULTIPLIER,
    CalculationParameters,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.config")

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_DECIMAL_FIELDS = ("monthly_working_hours", "overtime_multiplier")


@dataclass
class PayrollConfig:
    """
    Configuration schema for payroll generation.

    Field defaults reproduce the standard monthly schedule: 160 working
    hours, time-and-a-half overtime, Cambodian tax tables when an employee
    has no tax country.
    """

    # Calculation
    monthly_working_hours: Decimal = MONTHLY_WORKING_HOURS
    overtime_multiplier: Decimal = OVERTIME_MULTIPLIER
    default_tax_country: str = DEFAULT_TAX_COUNTRY
    display_decimal_places: int = 2

    # Listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Runtime
    database_url: str | None = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not isinstance(self.monthly_working_hours, Decimal):
            raise TypeError("monthly_working_hours must be Decimal")
        if not isinstance(self.overtime_multiplier, Decimal):
            raise TypeError("overtime_multiplier must be Decimal")
        if self.monthly_working_hours <= 0:
            raise ValueError("monthly_working_hours must be positive")
        if self.overtime_multiplier <= 0:
            raise ValueError("overtime_multiplier must be positive")
        if not self.default_tax_country or len(self.default_tax_country) > 3:
            raise ValueError(
                f"default_tax_country must be a 2 or 3 letter code, "
                f"got '{self.default_tax_country}'"
            )
        if self.display_decimal_places < 0:
            raise ValueError("display_decimal_places cannot be negative")
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be positive")
        if self.max_page_size < self.default_page_size:
            raise ValueError("max_page_size cannot be less than default_page_size")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{self.log_level}'"
            )

        logger.debug(
            "payroll_config_initialized",
            extra={
                "monthly_working_hours": str(self.monthly_working_hours),
                "overtime_multiplier": str(self.overtime_multiplier),
                "default_tax_country": self.default_tax_country,
                "default_page_size": self.default_page_size,
                "max_page_size": self.max_page_size,
            },
        )

    @property
    def calculation_parameters(self) -> CalculationParameters:
        return CalculationParameters(
            monthly_working_hours=self.monthly_working_hours,
            overtime_multiplier=self.overtime_multiplier,
            default_tax_country=self.default_tax_country,
            display_decimal_places=self.display_decimal_places,
        )

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("payroll_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Create config from a dictionary (e.g. parsed YAML).

        Raises:
            ValueError: on unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown payroll config keys: {unknown}")

        logger.info(
            "payroll_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        values = dict(data)
        for name in _DECIMAL_FIELDS:
            if name in values and not isinstance(values[name], Decimal):
                # YAML numbers arrive as int/float; go through their text form
                values[name] = Decimal(str(values[name]))
        return cls(**values)


def load_payroll_config(path: str | Path) -> PayrollConfig:
    """
    Load a PayrollConfig from a YAML file.

    An empty file yields the defaults.  A top-level ``payroll:`` mapping is
    accepted as well as a flat mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file is not valid YAML.
        ValueError: on unknown keys or invalid values.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Payroll config must be a mapping, got {type(data).__name__}")
    if set(data) == {"payroll"}:
        data = data["payroll"] or {}
    return PayrollConfig.from_dict(data)
