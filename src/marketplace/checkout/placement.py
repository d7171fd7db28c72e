"""Checkout placement — command and handler."""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.checkout.orchestrator import CheckoutOrchestrator
from marketplace.checkout.session import CheckoutSession
from marketplace.config import PaymentSettings
from marketplace.domain import marketplace
from marketplace.errors import EmptyCartError, NotFoundError
from marketplace.payment.gateway import gateway_for
from marketplace.payment.payment import PaymentMethod


@marketplace.command(part_of="CheckoutSession")
class PlaceCheckout:
    buyer_id = Identifier(required=True)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH_ON_DELIVERY.value)
    cart_id = Identifier()  # Defaults to the buyer's active cart
    address = Text()  # JSON: shipping address


@marketplace.command_handler(part_of=CheckoutSession)
class PlaceCheckoutHandler:
    @handle(PlaceCheckout)
    def place_checkout(self, command):
        cart_repo = current_domain.repository_for(ShoppingCart)
        if command.cart_id:
            cart = cart_repo.get(command.cart_id)
            if str(cart.buyer_id) != str(command.buyer_id):
                raise NotFoundError(f"Cart {command.cart_id} not found", cart_id=str(command.cart_id))
        else:
            cart = cart_repo.active_for_buyer(command.buyer_id)
            if cart is None:
                raise EmptyCartError({"cart": ["Cart is empty"]})

        address = json.loads(command.address) if isinstance(command.address, str) else command.address

        settings = PaymentSettings.from_env()
        orchestrator = CheckoutOrchestrator(
            gateway=gateway_for(command.payment_method, settings),
            currency=settings.currency,
        )
        return orchestrator.checkout(cart, address=address)
