"""
Tests for PayrollConfig.

Covers:
- Defaults
- Validation in __post_init__
- from_dict conversion and unknown keys
- YAML loading (flat and nested under ``payroll:``)
"""

import logging
from decimal import Decimal

import pytest
import yaml

from payroll_engines.payroll_calculation import CalculationParameters
from payroll_services.config import PayrollConfig, load_payroll_config


class TestDefaults:
    def test_standard_schedule(self):
        config = PayrollConfig.with_defaults()

        assert config.monthly_working_hours == Decimal("160")
        assert config.overtime_multiplier == Decimal("1.5")
        assert config.default_tax_country == "KH"
        assert config.default_page_size == 20
        assert config.max_page_size == 100

    def test_calculation_parameters(self):
        params = PayrollConfig(overtime_multiplier=Decimal("2")).calculation_parameters

        assert isinstance(params, CalculationParameters)
        assert params.overtime_multiplier == Decimal("2")
        assert params.monthly_working_hours == Decimal("160")

    def test_logging_level(self):
        assert PayrollConfig(log_level="debug").logging_level == logging.DEBUG


class TestValidation:
    def test_zero_hours_rejected(self):
        with pytest.raises(ValueError, match="monthly_working_hours"):
            PayrollConfig(monthly_working_hours=Decimal("0"))

    def test_float_multiplier_rejected(self):
        with pytest.raises(TypeError):
            PayrollConfig(overtime_multiplier=1.5)

    def test_max_page_below_default_rejected(self):
        with pytest.raises(ValueError, match="max_page_size"):
            PayrollConfig(default_page_size=50, max_page_size=10)

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValueError, match="log_level"):
            PayrollConfig(log_level="LOUD")


class TestFromDict:
    def test_numbers_become_decimal(self):
        config = PayrollConfig.from_dict({
            "monthly_working_hours": 173,
            "overtime_multiplier": 1.25,
        })

        assert config.monthly_working_hours == Decimal("173")
        assert config.overtime_multiplier == Decimal("1.25")

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="overtime_rate"):
            PayrollConfig.from_dict({"overtime_rate": 2})


class TestLoadYaml:
    def test_flat_file(self, tmp_path):
        path = tmp_path / "payroll.yaml"
        path.write_text(yaml.safe_dump({
            "overtime_multiplier": "2.0",
            "default_tax_country": "USA",
            "max_page_size": 50,
        }))

        config = load_payroll_config(path)

        assert config.overtime_multiplier == Decimal("2.0")
        assert config.default_tax_country == "USA"
        assert config.max_page_size == 50

    def test_nested_under_payroll_key(self, tmp_path):
        path = tmp_path / "payroll.yaml"
        path.write_text("payroll:\n  default_page_size: 5\n")

        assert load_payroll_config(path).default_page_size == 5

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_payroll_config(path) == PayrollConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ValueError, match="mapping"):
            load_payroll_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_payroll_config(tmp_path / "nope.yaml")
