"""
Pricing

Tier discount snapshot and platform/advisor split. Amounts are KWD with three
minor-unit digits (fils); every computed amount is rounded half-up to a fils.
"""

from decimal import ROUND_HALF_UP
from decimal import Decimal
from typing import Annotated
from typing import NamedTuple
from typing import Optional
from typing import Union

from pydantic import PlainSerializer

FILS = Decimal("0.001")
BPS_DENOMINATOR = 10000

# Largest value a NUMERIC(12,3) column holds
MAX_AMOUNT = Decimal("999999999.999")

# Decimal in Python, a JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

Number = Union[Decimal, int, float, str]


class Quote(NamedTuple):
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal


class Split(NamedTuple):
    platform_fee: Decimal
    advisor_payout: Decimal


def to_money(value: Number) -> Decimal:
    """Convert a number to a Decimal rounded to one fils."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(FILS, rounding=ROUND_HALF_UP)


def is_valid_amount(value: Number) -> bool:
    """True when the amount is at least one fils and fits the money columns."""
    if isinstance(value, float):
        value = str(value)
    amount = Decimal(value)
    if amount <= 0 or amount > MAX_AMOUNT:
        return False
    return 0 < to_money(amount) <= MAX_AMOUNT


def apply_bps(amount: Decimal, bps: int) -> Decimal:
    return to_money(amount * Decimal(bps) / BPS_DENOMINATOR)


def quote(gross_amount: Optional[Number], discount_rate_bps: int) -> Optional[Quote]:
    """
    Price a request for a tier.

    discount = round(gross * bps / 10000), net = gross - discount.

    Returns:
        Quote, or None when no gross amount is known yet
    """
    if gross_amount is None:
        return None
    gross = to_money(gross_amount)
    discount = apply_bps(gross, discount_rate_bps)
    return Quote(gross_amount=gross, discount_amount=discount, net_amount=gross - discount)


def split_payout(gross_amount: Number, platform_fee_bps: int) -> Split:
    """
    Split an order's gross amount between the platform and the advisor.

    platform_fee = round(gross * bps / 10000), advisor_payout = max(gross - fee, 0).
    The tier discount is carried by the platform, not the advisor.
    """
    amount = to_money(gross_amount)
    fee = apply_bps(amount, platform_fee_bps)
    return Split(platform_fee=fee, advisor_payout=max(amount - fee, Decimal("0.000")))
