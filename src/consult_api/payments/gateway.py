"""
Payment Gateway

Capability used by the workflow to reserve a payment for a pending order.
The workflow never marks an order paid on its own: success only arrives via
the gateway callback (confirm_payment).
"""

from abc import ABC
from abc import abstractmethod
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from consult_api.errors import UpstreamError
from consult_api.settings import Settings
from consult_api.workflow.models import Order

PLACEHOLDER_REFERENCE = "PENDING"
PLACEHOLDER_NOTE = "Payment gateway not yet connected. Awaiting integration."


class GatewayReservation(BaseModel):
    """What the gateway returned for a reservation request."""

    gateway: str
    reference: Optional[str] = None
    payment_url: Optional[str] = None
    note: Optional[str] = None


class PaymentGateway(ABC):
    """Reserve funds for an order with an external payment processor."""

    name: str

    @abstractmethod
    async def reserve(self, order: Order) -> GatewayReservation:
        """
        Request a reservation for a pending order.

        Args:
            order: Pending order carrying the amount and currency

        Returns:
            GatewayReservation with the processor's reference

        Raises:
            UpstreamError: If the processor refuses or cannot be reached
        """

    async def close(self) -> None:
        return None


class PlaceholderGateway(PaymentGateway):
    """Records a pending reservation without contacting any processor."""

    def __init__(self, name: str = "myfatoorah"):
        self.name = name

    async def reserve(self, order: Order) -> GatewayReservation:
        logger.info(
            "Payment reservation recorded (gateway not connected)",
            order_id=order.id,
            request_id=order.request_id,
            amount=str(order.net_amount),
            currency=order.currency,
            gateway=self.name,
        )
        return GatewayReservation(gateway=self.name, reference=PLACEHOLDER_REFERENCE, note=PLACEHOLDER_NOTE)


class HttpPaymentGateway(PaymentGateway):
    """Reserves payments through a processor's JSON HTTP API."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        name: str = "myfatoorah",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.name = name
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def reserve(self, order: Order) -> GatewayReservation:
        payload = {
            "orderId": order.id,
            "requestId": order.request_id,
            "userId": order.user_id,
            "amount": str(order.net_amount),
            "currency": order.currency,
        }
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamError(
                f"Payment gateway '{self.name}' timed out", gateway=self.name, order_id=order.id
            ) from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Payment gateway '{self.name}' rejected the reservation ({e.response.status_code})",
                gateway=self.name,
                order_id=order.id,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Could not reach payment gateway '{self.name}': {e}", gateway=self.name, order_id=order.id
            ) from e
        except ValueError as e:
            raise UpstreamError(
                f"Payment gateway '{self.name}' returned an invalid response", gateway=self.name, order_id=order.id
            ) from e

        logger.info(
            "Payment reservation created",
            order_id=order.id,
            gateway=self.name,
            gateway_reference=body.get("reference"),
        )
        return GatewayReservation(
            gateway=self.name,
            reference=body.get("reference"),
            payment_url=body.get("paymentUrl"),
        )

    async def close(self) -> None:
        await self._client.aclose()


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    """Build the gateway selected by settings.payment_gateway ('placeholder' or 'http')."""
    if settings.payment_gateway == "http":
        if not settings.payment_gateway_url:
            raise ValueError("PAYMENT_GATEWAY_URL is required when PAYMENT_GATEWAY=http")
        return HttpPaymentGateway(
            url=settings.payment_gateway_url,
            api_key=settings.payment_gateway_api_key,
            name=settings.payment_gateway_name,
            timeout=settings.payment_gateway_timeout_seconds,
        )
    return PlaceholderGateway(name=settings.payment_gateway_name)
