"""
Order Model

Payment ledger row for a consultation, carrying the gateway fields.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from consult_api.workflow.enums import OrderStatus
from consult_api.workflow.pricing import Money


class Order(BaseModel):
    """Order database model."""

    id: int
    user_id: int
    request_id: int
    advisor_id: Optional[int] = None
    service_type: str = "consultation"
    status: OrderStatus

    gross_amount: Money
    discount_amount: Money = Decimal("0")
    net_amount: Money
    currency: str = "KWD"
    platform_fee: Optional[Money] = None
    advisor_payout: Optional[Money] = None

    # Gateway fields (opaque to the workflow)
    gateway: Optional[str] = None
    gateway_reference: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    payment_url: Optional[str] = None
    notes: Optional[str] = None

    paid_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
