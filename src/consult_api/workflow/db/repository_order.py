"""
Order Repository

Queries for consult.orders, the payment ledger behind a consultation.
"""

from decimal import Decimal
from typing import Dict
from typing import List
from typing import Optional

from consult_api.workflow.db.repository_base import BaseRepository
from consult_api.workflow.enums import OrderStatus
from consult_api.workflow.models import Order


class OrderRepository(BaseRepository):
    """Order repository."""

    model = Order

    async def create(
        self,
        user_id: int,
        request_id: int,
        advisor_id: Optional[int],
        gross_amount: Decimal,
        discount_amount: Decimal,
        net_amount: Decimal,
        currency: str,
        platform_fee: Decimal,
        advisor_payout: Decimal,
        notes: Optional[str] = None,
    ) -> Order:
        """Insert a pending order."""
        return await self._fetch_one(
            """
            INSERT INTO consult.orders
                (user_id, request_id, advisor_id, service_type, status, gross_amount, discount_amount,
                 net_amount, currency, platform_fee, advisor_payout, notes)
            VALUES ($1, $2, $3, 'consultation', 'pending', $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
            """,
            user_id,
            request_id,
            advisor_id,
            gross_amount,
            discount_amount,
            net_amount,
            currency,
            platform_fee,
            advisor_payout,
            notes,
        )

    async def get(self, order_id: int) -> Optional[Order]:
        return await self._fetch_one("SELECT * FROM consult.orders WHERE id = $1", order_id)

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        return await self._fetch_one("SELECT * FROM consult.orders WHERE id = $1 FOR UPDATE", order_id)

    async def latest_for_request(self, request_id: int) -> Optional[Order]:
        """Most recent order of a request (a failed reservation leaves older rows behind)."""
        return await self._fetch_one(
            "SELECT * FROM consult.orders WHERE request_id = $1 ORDER BY id DESC LIMIT 1",
            request_id,
        )

    async def record_reservation(
        self, order_id: int, gateway: str, gateway_reference: Optional[str], payment_url: Optional[str]
    ) -> Order:
        return await self._fetch_one(
            """
            UPDATE consult.orders
            SET gateway = $2, gateway_reference = $3, payment_url = $4, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            order_id,
            gateway,
            gateway_reference,
            payment_url,
        )

    async def settle(
        self,
        order_id: int,
        to_status: OrderStatus,
        gateway_payment_id: Optional[str],
        gateway_reference: Optional[str],
    ) -> Optional[Order]:
        """
        Record the gateway outcome of a pending order.

        Returns:
            Updated order, or None if the order was no longer pending
        """
        return await self._fetch_one(
            """
            UPDATE consult.orders
            SET status = $2,
                gateway_payment_id = COALESCE($3, gateway_payment_id),
                gateway_reference = COALESCE($4, gateway_reference),
                paid_at = CASE WHEN $2 = 'completed' THEN NOW() ELSE paid_at END,
                updated_at = NOW()
            WHERE id = $1 AND status = 'pending'
            RETURNING *
            """,
            order_id,
            OrderStatus(to_status).value,
            gateway_payment_id,
            gateway_reference,
        )

    async def record_release(self, order_id: int, platform_fee: Decimal, advisor_payout: Decimal) -> Order:
        return await self._fetch_one(
            """
            UPDATE consult.orders
            SET platform_fee = $2, advisor_payout = $3, released_at = NOW(), updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            order_id,
            platform_fee,
            advisor_payout,
        )

    async def cancel_pending(self, request_id: int) -> List[Order]:
        return await self._fetch_all(
            """
            UPDATE consult.orders
            SET status = 'cancelled', updated_at = NOW()
            WHERE request_id = $1 AND status = 'pending'
            RETURNING *
            """,
            request_id,
        )

    async def released_totals(self, advisor_id: int) -> Dict[str, Decimal]:
        """Sum gross, platform fee and payout over an advisor's released orders."""
        row = await self.conn.fetchrow(
            """
            SELECT COUNT(*) AS order_count,
                   COALESCE(SUM(gross_amount), 0) AS gross,
                   COALESCE(SUM(platform_fee), 0) AS platform_fee,
                   COALESCE(SUM(advisor_payout), 0) AS payout
            FROM consult.orders
            WHERE advisor_id = $1 AND status = 'completed' AND released_at IS NOT NULL
            """,
            advisor_id,
        )
        return {
            "order_count": int(row["order_count"]),
            "gross": Decimal(row["gross"]),
            "platform_fee": Decimal(row["platform_fee"]),
            "payout": Decimal(row["payout"]),
        }
