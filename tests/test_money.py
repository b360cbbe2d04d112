"""
Test suite for money module

Tests amount and rate validation and half-up rounding to the currency unit.
"""

import pytest
from decimal import Decimal

from bank_ledger.errors import ErrorKind, LedgerError
from bank_ledger.money import (
    exact_arithmetic, format_amount, parse_amount, parse_rate, percent_of, smallest_unit
)


class TestParseAmount:
    """Test amount validation"""

    def test_accepts_common_inputs(self):
        """Test strings, ints, Decimals and floats are accepted"""
        assert parse_amount("10.50", 2) == Decimal("10.50")
        assert parse_amount(7, 2) == Decimal("7")
        assert parse_amount(Decimal("0.01"), 2) == Decimal("0.01")
        assert parse_amount(7.5, 2) == Decimal("7.5")

    @pytest.mark.parametrize("value", [0, "0", -1, "-0.01", "abc", "", None, True,
                                       "NaN", "Infinity", float("nan")])
    def test_rejects_invalid_amounts(self, value):
        """Test non-positive and malformed amounts are rejected"""
        with pytest.raises(LedgerError) as exc_info:
            parse_amount(value, 2)
        assert exc_info.value.kind is ErrorKind.INVALID_AMOUNT

    def test_rejects_sub_unit_precision(self):
        """Test amounts finer than the currency unit are rejected"""
        with pytest.raises(LedgerError) as exc_info:
            parse_amount("1.001", 2)
        assert exc_info.value.kind is ErrorKind.INVALID_AMOUNT

    def test_zero_allowed_when_requested(self):
        """Test zero passes when explicitly allowed"""
        assert parse_amount("0", 2, allow_zero=True) == Decimal("0")


class TestParseRate:
    """Test rate validation"""

    def test_accepts_valid_rates(self):
        """Test zero and positive rates"""
        assert parse_rate("0") == Decimal("0")
        assert parse_rate("250") == Decimal("250")
        assert parse_rate("100", maximum=Decimal("100")) == Decimal("100")

    @pytest.mark.parametrize("value", ["-1", "abc", None, "NaN"])
    def test_rejects_invalid_rates(self, value):
        """Test negative and malformed rates"""
        with pytest.raises(LedgerError) as exc_info:
            parse_rate(value)
        assert exc_info.value.kind is ErrorKind.INVALID_RATE

    def test_rejects_rate_above_maximum(self):
        """Test rates above the maximum"""
        with pytest.raises(LedgerError) as exc_info:
            parse_rate("100.5", maximum=Decimal("100"))
        assert exc_info.value.kind is ErrorKind.INVALID_RATE


class TestRounding:
    """Test percentage calculation"""

    def test_smallest_unit(self):
        """Test unit for common precisions"""
        assert smallest_unit(2) == Decimal("0.01")
        assert smallest_unit(0) == Decimal("1")

    def test_round_half_up(self):
        """Test halves round away from zero"""
        assert percent_of(Decimal("10.05"), Decimal("10"), 2) == Decimal("1.01")
        assert percent_of(Decimal("0.25"), Decimal("10"), 2) == Decimal("0.03")

    def test_exact_percentage(self):
        """Test exact results are unchanged"""
        assert percent_of(Decimal("20"), Decimal("10"), 2) == Decimal("2.00")
        assert percent_of(Decimal("8"), Decimal("50"), 2) == Decimal("4.00")

    def test_format_amount(self):
        """Test fixed-decimal rendering"""
        assert format_amount(Decimal("5"), 2) == "5.00"
        assert format_amount(None, 2) is None


class TestExactArithmetic:
    """Test the exact arithmetic context"""

    def test_exact_sums_pass(self):
        """Test results that fit the context are unchanged"""
        with exact_arithmetic():
            total = Decimal("99999999999999999999999999.98") + Decimal("0.01")
        assert total == Decimal("99999999999999999999999999.99")

    def test_rounded_sum_raises(self):
        """Test a sum that would be rounded becomes INVALID_AMOUNT"""
        with pytest.raises(LedgerError) as exc_info:
            with exact_arithmetic():
                Decimal("99999999999999999999999999.99") * 2
        assert exc_info.value.kind is ErrorKind.INVALID_AMOUNT

    def test_percentage_may_round_inside_context(self):
        """Test rounding to the currency unit is still allowed"""
        with exact_arithmetic():
            assert percent_of(Decimal("10.05"), Decimal("10"), 2) == Decimal("1.01")

    def test_percentage_too_large_raises(self):
        """Test a percentage that cannot be represented to the unit"""
        with pytest.raises(LedgerError) as exc_info:
            with exact_arithmetic():
                percent_of(Decimal("10"), Decimal("1e60"), 2)
        assert exc_info.value.kind is ErrorKind.INVALID_AMOUNT
