"""
Tests for posting amount validation and money helpers.
"""

from decimal import Decimal

import pytest

from ledger_kernel.db.types import round_money, to_money, validate_amount
from ledger_kernel.exceptions import InvalidAmountError


class TestValidateAmount:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("1000.00"), Decimal("1000.00")),
            (Decimal("0.01"), Decimal("0.01")),
            (Decimal("12.5"), Decimal("12.50")),
            (7, Decimal("7.00")),
            (Decimal("999999999999999999.99"), Decimal("999999999999999999.99")),
        ],
    )
    def test_accepts(self, amount, expected):
        result = validate_amount(amount)
        assert result == expected
        assert result.as_tuple().exponent == -2

    @pytest.mark.parametrize(
        "amount",
        [
            Decimal("0"),
            Decimal("0.00"),
            Decimal("-5.00"),
            Decimal("0.001"),
            Decimal("10.005"),
            Decimal("1000000000000000000.00"),
            Decimal("NaN"),
            Decimal("Infinity"),
        ],
    )
    def test_rejects(self, amount):
        with pytest.raises(InvalidAmountError):
            validate_amount(amount)

    @pytest.mark.parametrize("amount", [10.5, "10.50", True, None])
    def test_rejects_non_decimal_types(self, amount):
        with pytest.raises(InvalidAmountError):
            validate_amount(amount)

    def test_error_carries_amount_and_reason(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            validate_amount(Decimal("-1.00"))
        assert exc_info.value.amount == "-1.00"
        assert "positive" in exc_info.value.reason
        assert exc_info.value.retryable is True


class TestMoneyHelpers:
    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_to_money_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")

    def test_to_money_rejects_float(self):
        with pytest.raises(TypeError):
            to_money(1.5)
