"""
Tests for currency arithmetic, parsing and formatting.
"""

from __future__ import annotations

from fractions import Fraction

import pytest

from walrus_cli.constants import SIACOIN_PRECISION
from walrus_cli.currency import (
    Currency,
    CurrencyError,
    format_currency,
    format_siacoins,
    parse_currency,
    siacoins,
)
from walrus_cli.errors import InvalidInputError


class TestCurrency:
    """Tests for the Currency type."""

    def test_rejects_negative(self) -> None:
        with pytest.raises(CurrencyError):
            Currency(-1)

    def test_rejects_non_integers(self) -> None:
        with pytest.raises(CurrencyError):
            Currency(1.5)  # type: ignore[arg-type]
        with pytest.raises(CurrencyError):
            Currency(True)

    def test_parses_decimal_string(self) -> None:
        assert Currency("123456789012345678901234567890") == 123456789012345678901234567890

    def test_invalid_string(self) -> None:
        with pytest.raises(CurrencyError):
            Currency("12abc")

    def test_arithmetic_keeps_type(self) -> None:
        a = Currency(10)
        assert isinstance(a + 5, Currency)
        assert isinstance(5 + a, Currency)
        assert isinstance(a - 3, Currency)
        assert isinstance(a * 3, Currency)
        assert a + 5 == 15
        assert a * 3 == 30

    def test_subtraction_below_zero_raises(self) -> None:
        with pytest.raises(CurrencyError):
            Currency(5) - Currency(6)

    def test_currency_error_is_invalid_input(self) -> None:
        assert issubclass(CurrencyError, InvalidInputError)

    def test_mul_rat_truncates(self) -> None:
        assert Currency(199).mul_rat(Fraction(1, 100)) == 1
        assert Currency(10) * Fraction(1, 3) == 3

    def test_sum_with_start(self) -> None:
        total = sum([Currency(1), Currency(2)], Currency(0))
        assert isinstance(total, Currency)
        assert total == 3

    def test_str_is_decimal(self) -> None:
        assert str(Currency(42)) == "42"
        assert repr(Currency(42)) == "Currency(42)"


class TestParseCurrency:
    """Tests for SC amount parsing."""

    def test_whole(self) -> None:
        assert parse_currency("3") == 3 * SIACOIN_PRECISION

    def test_decimal(self) -> None:
        assert parse_currency("1.5") == 3 * SIACOIN_PRECISION // 2

    def test_ratio(self) -> None:
        assert parse_currency("3/2") == parse_currency("1.5")

    def test_exponent(self) -> None:
        assert parse_currency("1e3") == 1000 * SIACOIN_PRECISION

    def test_smallest_unit(self) -> None:
        assert parse_currency("1e-24") == 1

    def test_whitespace(self) -> None:
        assert parse_currency(" 2 ") == siacoins(2)

    def test_negative(self) -> None:
        with pytest.raises(InvalidInputError):
            parse_currency("-1")

    def test_garbage(self) -> None:
        with pytest.raises(InvalidInputError):
            parse_currency("ten")

    def test_zero_denominator(self) -> None:
        with pytest.raises(InvalidInputError):
            parse_currency("1/0")


class TestFormatCurrency:
    """Tests for human-readable formatting."""

    def test_hastings(self) -> None:
        assert format_currency(999_999) == "999999 H"

    def test_siacoins(self) -> None:
        assert format_currency(siacoins("1.5")) == "1.5 SC"

    def test_milli(self) -> None:
        assert format_currency(siacoins("0.25")) == "250 mS"

    def test_kilo(self) -> None:
        assert format_currency(siacoins(12_000)) == "12 KS"

    def test_largest_unit_caps(self) -> None:
        assert format_currency(siacoins(5 * 10**15)) == "5000 TS"

    def test_fixed_siacoins(self) -> None:
        assert format_siacoins(siacoins("1.5")) == "1.50000"
        assert format_siacoins(siacoins(10)) == "10.00000"
        assert format_siacoins(0) == "0.00000"

    def test_fixed_siacoins_rounds(self) -> None:
        assert format_siacoins(siacoins("0.000005")) == "0.00001"
        assert format_siacoins(siacoins("0.0000049")) == "0.00000"
