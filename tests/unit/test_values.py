"""
Tests for the decimal value helpers.

Covers:
- to_decimal normalization and float rejection
- optional_decimal defaults
- money_context precision
- round_money display rounding
- ExactDecimal bind/result processing and exactness
"""

from decimal import Decimal

import pytest

from payroll_kernel.db.types import (
    ExactDecimal,
    fits_numeric,
    round_money,
    validate_currency_code,
)
from payroll_kernel.domain.values import (
    ZERO,
    money_context,
    optional_decimal,
    sum_decimals,
    to_decimal,
)


class TestToDecimal:
    """Input normalization."""

    def test_decimal_passes_through(self):
        value = Decimal("2500.00")
        assert to_decimal(value) is value

    def test_int_and_str_accepted(self):
        assert to_decimal(10) == Decimal("10")
        assert to_decimal(" 15.625 ") == Decimal("15.625")

    def test_float_rejected(self):
        with pytest.raises(TypeError, match="bonus"):
            to_decimal(0.1, "bonus")

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_garbage_string_rejected(self):
        with pytest.raises(ValueError, match="not a decimal number"):
            to_decimal("ten")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError, match="finite"):
            to_decimal(value)


class TestOptionalDecimal:
    def test_none_is_zero(self):
        assert optional_decimal(None) == ZERO

    def test_none_uses_given_default(self):
        assert optional_decimal(None, default=Decimal("7")) == Decimal("7")

    def test_value_is_normalized(self):
        assert optional_decimal("3") == Decimal("3")


class TestMoneyContext:
    """Division keeps every digit later multiplication needs."""

    def test_division_by_160_is_exact_for_salary(self):
        with money_context():
            hourly = Decimal("2500.00") / Decimal("160")
        assert hourly == Decimal("15.625")

    def test_repeating_division_keeps_38_digits(self):
        with money_context():
            third = Decimal("1") / Decimal("3")
        assert len(third.as_tuple().digits) == 38

    def test_sum_decimals_empty(self):
        assert sum_decimals([]) == ZERO

    def test_sum_decimals_exact(self):
        assert sum_decimals([Decimal("0.1")] * 10) == Decimal("1.0")


class TestRoundMoney:
    """Display rounding only."""

    def test_half_up(self):
        assert round_money(Decimal("23.4375")) == Decimal("23.44")
        assert round_money(Decimal("0.125")) == Decimal("0.13")

    def test_zero_places(self):
        assert round_money(Decimal("2.5"), 0) == Decimal("3")


class TestExactDecimal:
    """Column type never produces floats."""

    class _Dialect:
        def __init__(self, name):
            self.name = name

    def test_sqlite_binds_string(self):
        col = ExactDecimal(38, 9)
        bound = col.process_bind_param(Decimal("2972.65625"), self._Dialect("sqlite"))
        assert bound == "2972.656250000"

    def test_postgres_binds_decimal(self):
        col = ExactDecimal(38, 9)
        bound = col.process_bind_param(Decimal("1.5"), self._Dialect("postgresql"))
        assert isinstance(bound, Decimal)

    def test_money_default_keeps_eighteen_places(self):
        bound = ExactDecimal().process_bind_param(
            Decimal("126.465349609375"), self._Dialect("sqlite"),
        )
        assert Decimal(bound) == Decimal("126.465349609375")

    @pytest.mark.parametrize("value", [
        Decimal("1.0000000005"),
        Decimal("12345678901234567890123456789012345678"),
    ])
    def test_inexact_bind_rejected(self, value):
        with pytest.raises(ValueError):
            ExactDecimal(38, 9).process_bind_param(value, self._Dialect("sqlite"))

    def test_float_bind_rejected(self):
        with pytest.raises(TypeError):
            ExactDecimal().process_bind_param(1.5, self._Dialect("sqlite"))

    def test_result_is_decimal(self):
        value = ExactDecimal().process_result_value("161.718750000", self._Dialect("sqlite"))
        assert value == Decimal("161.71875")


class TestFitsNumeric:
    @pytest.mark.parametrize("value", ["0", "2402.841642578125", "0.000000000000000001"])
    def test_fits(self, value):
        assert fits_numeric(Decimal(value))

    @pytest.mark.parametrize("value", [
        "0.0000000000000000001",
        "123456789012345678901",
        "NaN",
    ])
    def test_does_not_fit(self, value):
        assert not fits_numeric(Decimal(value))


class TestCurrencyCodes:
    @pytest.mark.parametrize("code", ["USD", "KHR", "EUR"])
    def test_known_codes(self, code):
        assert validate_currency_code(code)

    @pytest.mark.parametrize("code", ["usd", "XXX1", "", "ABC"])
    def test_unknown_codes(self, code):
        assert not validate_currency_code(code)
