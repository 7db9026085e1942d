"""Unit tests for the payment gateway implementations."""

import json
from datetime import datetime
from datetime import timezone
from decimal import Decimal

import httpx
import pytest

from consult_api.errors import UpstreamError
from consult_api.payments.gateway import PLACEHOLDER_REFERENCE
from consult_api.payments.gateway import HttpPaymentGateway
from consult_api.payments.gateway import PlaceholderGateway
from consult_api.payments.gateway import build_payment_gateway
from consult_api.workflow.enums import OrderStatus
from consult_api.workflow.models import Order

GATEWAY_URL = "https://gateway.test/reservations"


@pytest.fixture
def pending_order():
    now = datetime.now(timezone.utc)
    return Order(
        id=31,
        user_id=100,
        request_id=11,
        advisor_id=3,
        status=OrderStatus.PENDING,
        gross_amount=Decimal("100.000"),
        net_amount=Decimal("90.000"),
        created_at=now,
        updated_at=now,
    )


def gateway_with(handler) -> HttpPaymentGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPaymentGateway(GATEWAY_URL, name="testpay", client=client)


class TestPlaceholderGateway:
    @pytest.mark.asyncio
    async def test_records_pending_reservation(self, pending_order):
        reservation = await PlaceholderGateway().reserve(pending_order)

        assert reservation.gateway == "myfatoorah"
        assert reservation.reference == PLACEHOLDER_REFERENCE
        assert reservation.payment_url is None
        assert reservation.note


class TestHttpPaymentGateway:
    @pytest.mark.asyncio
    async def test_reserve_posts_order(self, pending_order):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"reference": "INV-9", "paymentUrl": "https://pay.test/INV-9"})

        gateway = gateway_with(handler)
        reservation = await gateway.reserve(pending_order)
        await gateway.close()

        assert seen["url"] == GATEWAY_URL
        assert seen["body"] == {
            "orderId": 31,
            "requestId": 11,
            "userId": 100,
            "amount": "90.000",
            "currency": "KWD",
        }
        assert reservation.gateway == "testpay"
        assert reservation.reference == "INV-9"
        assert reservation.payment_url == "https://pay.test/INV-9"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "handler",
        [
            lambda request: httpx.Response(503, json={"error": "down"}),
            lambda request: httpx.Response(200, content=b"<html>"),
        ],
        ids=["http_error", "invalid_json"],
    )
    async def test_bad_responses_raise_upstream_error(self, pending_order, handler):
        gateway = gateway_with(handler)

        with pytest.raises(UpstreamError) as exc_info:
            await gateway.reserve(pending_order)

        assert exc_info.value.details["order_id"] == 31

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_class", [httpx.ConnectError, httpx.ReadTimeout])
    async def test_transport_errors_raise_upstream_error(self, pending_order, error_class):
        def handler(request):
            raise error_class("unreachable", request=request)

        with pytest.raises(UpstreamError):
            await gateway_with(handler).reserve(pending_order)


class TestBuildPaymentGateway:
    def test_placeholder_by_default(self, mock_settings):
        gateway = build_payment_gateway(mock_settings)

        assert isinstance(gateway, PlaceholderGateway)

    @pytest.mark.asyncio
    async def test_http_gateway(self, mock_settings):
        settings = mock_settings.model_copy(
            update={"payment_gateway": "http", "payment_gateway_url": GATEWAY_URL, "payment_gateway_api_key": "k"}
        )

        gateway = build_payment_gateway(settings)
        await gateway.close()

        assert isinstance(gateway, HttpPaymentGateway)
        assert gateway.url == GATEWAY_URL

    def test_http_gateway_requires_url(self, mock_settings):
        with pytest.raises(ValueError):
            build_payment_gateway(mock_settings.model_copy(update={"payment_gateway": "http"}))
