"""Payment gateway selection.

``gateway_for`` maps a payment method onto its gateway variant:

- CASH_ON_DELIVERY → CashOnDeliveryGateway
- EXTERNAL → ExternalGateway, or BypassGateway when bypass mode is on

Gateways are built per call from explicit settings; nothing is cached at
module level. ``set_http_client`` lets tests route provider calls through an
``httpx.MockTransport``.
"""

import httpx
from protean.exceptions import ValidationError

from marketplace.config import PaymentSettings
from marketplace.payment.gateway.bypass import BypassGateway
from marketplace.payment.gateway.cash_on_delivery import CashOnDeliveryGateway
from marketplace.payment.gateway.external import ExternalGateway
from marketplace.payment.gateway.port import PaymentGateway
from marketplace.payment.payment import PaymentMethod

_http_client: httpx.Client | None = None


def set_http_client(client: httpx.Client | None) -> None:
    """Override the HTTP client used for provider calls (useful for tests)."""
    global _http_client
    _http_client = client


def gateway_for(method: str, settings: PaymentSettings | None = None) -> PaymentGateway:
    try:
        payment_method = PaymentMethod(method)
    except ValueError as exc:
        raise ValidationError({"payment_method": [f"Unsupported payment method: {method}"]}) from exc

    if payment_method is PaymentMethod.CASH_ON_DELIVERY:
        return CashOnDeliveryGateway()

    settings = settings or PaymentSettings.from_env()
    if settings.bypass:
        return BypassGateway()
    return ExternalGateway(settings, client=_http_client)


__all__ = [
    "BypassGateway",
    "CashOnDeliveryGateway",
    "ExternalGateway",
    "PaymentGateway",
    "gateway_for",
    "set_http_client",
]
