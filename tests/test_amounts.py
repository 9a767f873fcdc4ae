"""
Tests for monetary amount parsing
"""

import pytest
from decimal import Decimal

from bank_ledger.amounts import (
    MAX_AMOUNT, ZERO, parse_amount, parse_balance, quantize, to_decimal
)
from bank_ledger.errors import InvalidAmount


class TestAmounts:
    """Test Decimal parsing and rounding"""

    def test_quantize_rounds_half_up(self):
        assert quantize(Decimal("1.005")) == Decimal("1.01")
        assert quantize(Decimal("1.004")) == Decimal("1.00")
        assert quantize(Decimal("-1.005")) == Decimal("-1.01")

    def test_to_decimal_accepts_common_inputs(self):
        assert to_decimal("12.3") == Decimal("12.30")
        assert to_decimal(" 7 ") == Decimal("7.00")
        assert to_decimal(5) == Decimal("5.00")
        assert to_decimal(19.99) == Decimal("19.99")
        assert to_decimal(Decimal("3.14159")) == Decimal("3.14")

    @pytest.mark.parametrize("value", [None, True, False, "", "ten", "1e", [], {},
                                       float("nan"), float("-inf"), Decimal("Infinity")])
    def test_to_decimal_rejects(self, value):
        with pytest.raises(InvalidAmount):
            to_decimal(value)

    def test_parse_amount_must_be_positive(self):
        assert parse_amount("0.01") == Decimal("0.01")
        with pytest.raises(InvalidAmount) as exc_info:
            parse_amount("0.001")
        assert exc_info.value.message == "Valid amount is required"
        with pytest.raises(InvalidAmount):
            parse_amount(-1)

    def test_invalid_amount_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_amount("x")

    def test_parse_balance_allows_zero(self):
        assert parse_balance(0) == ZERO
        with pytest.raises(InvalidAmount) as exc_info:
            parse_balance("-0.01")
        assert exc_info.value.message == "Balance cannot be negative"

    def test_largest_amount_is_accepted(self):
        assert to_decimal(MAX_AMOUNT) == Decimal("99999999999999999999999999.99")
        assert parse_amount(str(MAX_AMOUNT)) == MAX_AMOUNT

    @pytest.mark.parametrize("value", ["1e30", "100000000000000000000000000", -1e27,
                                       Decimal("99999999999999999999999999.995")])
    def test_amounts_beyond_precision_are_rejected(self, value):
        with pytest.raises(InvalidAmount) as exc_info:
            to_decimal(value)
        assert exc_info.value.message == "Amount exceeds ledger limit"

    def test_quantize_overflow_is_invalid_amount(self):
        with pytest.raises(InvalidAmount) as exc_info:
            quantize(Decimal("1E+26"))
        assert exc_info.value.message == "Amount exceeds ledger precision"
