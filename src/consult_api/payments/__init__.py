"""Payment gateway capability."""

from consult_api.payments.gateway import GatewayReservation
from consult_api.payments.gateway import HttpPaymentGateway
from consult_api.payments.gateway import PaymentGateway
from consult_api.payments.gateway import PlaceholderGateway
from consult_api.payments.gateway import build_payment_gateway

__all__ = [
    "GatewayReservation",
    "HttpPaymentGateway",
    "PaymentGateway",
    "PlaceholderGateway",
    "build_payment_gateway",
]
