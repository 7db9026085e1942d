"""Unit tests for tier discounts and the platform/advisor split."""

from decimal import Decimal
from typing import Optional

import pytest
from pydantic import BaseModel

from consult_api.workflow.pricing import MAX_AMOUNT
from consult_api.workflow.pricing import Money
from consult_api.workflow.pricing import is_valid_amount
from consult_api.workflow.pricing import quote
from consult_api.workflow.pricing import split_payout
from consult_api.workflow.pricing import to_money


class TestToMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("1.0005"), Decimal("1.001")),
            (Decimal("1.0004"), Decimal("1.000")),
            ("2.5", Decimal("2.500")),
            (3, Decimal("3.000")),
            (0.1, Decimal("0.100")),
        ],
        ids=["half_up", "round_down", "string", "int", "float_via_str"],
    )
    def test_rounds_to_fils(self, value, expected):
        assert to_money(value) == expected
        assert to_money(value).as_tuple().exponent == -3


class TestQuote:
    def test_no_gross_amount_gives_no_quote(self):
        assert quote(None, 1000) is None

    def test_zero_discount(self):
        result = quote(Decimal("100"), 0)

        assert result.gross_amount == Decimal("100.000")
        assert result.discount_amount == Decimal("0.000")
        assert result.net_amount == Decimal("100.000")

    def test_tier_discount_rounds_half_up(self):
        # 12.345 * 10% = 1.2345 -> 1.235
        result = quote(Decimal("12.345"), 1000)

        assert result.discount_amount == Decimal("1.235")
        assert result.net_amount == Decimal("11.110")
        assert result.discount_amount + result.net_amount == result.gross_amount


class TestSplitPayout:
    def test_default_commission(self):
        split = split_payout(Decimal("90"), 3000)

        assert split.platform_fee == Decimal("27.000")
        assert split.advisor_payout == Decimal("63.000")

    @pytest.mark.parametrize(
        "amount,bps",
        [(Decimal("0.001"), 3000), (Decimal("33.333"), 3333), (Decimal("7"), 0), (Decimal("7"), 10000)],
    )
    def test_parts_add_up_and_are_never_negative(self, amount, bps):
        split = split_payout(amount, bps)

        assert split.platform_fee >= 0
        assert split.advisor_payout >= 0
        assert split.platform_fee + split.advisor_payout == to_money(amount)

    def test_full_commission_leaves_no_payout(self):
        split = split_payout(Decimal("50"), 10000)

        assert split.platform_fee == Decimal("50.000")
        assert split.advisor_payout == Decimal("0.000")


class TestAmountBounds:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("0.001"), True),
            (MAX_AMOUNT, True),
            (Decimal("0"), False),
            (Decimal("0.0004"), False),
            (Decimal("-1"), False),
            (Decimal("999999999.9996"), False),
            (Decimal("1E+30"), False),
        ],
    )
    def test_is_valid_amount(self, value, expected):
        assert is_valid_amount(value) is expected


class TestMoneySerialization:
    class Priced(BaseModel):
        amount: Money
        fee: Optional[Money] = None

    def test_json_mode_gives_numbers(self):
        dumped = self.Priced(amount=Decimal("12.345")).model_dump(mode="json")

        assert dumped == {"amount": 12.345, "fee": None}

    def test_python_mode_keeps_decimal(self):
        assert self.Priced(amount=Decimal("12.345")).model_dump()["amount"] == Decimal("12.345")
