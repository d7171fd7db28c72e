"""Order lifecycle — seller/admin transitions and the settlement trigger.

Reaching DELIVERED or COMPLETED credits the seller's wallet in the same unit
of work. The order's ``settled`` flag makes the credit happen once no matter
how many times those states are reached or requested.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.order import Order
from marketplace.payment.payment import Payment, PaymentStatus
from marketplace.wallet.ledger import WalletLedger

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class AcceptOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


@marketplace.command(part_of="Order")
class RejectOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    reason = String(max_length=500)


@marketplace.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)


@marketplace.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


@marketplace.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


@marketplace.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    reason = String(max_length=500)


def _load_authorized(command) -> Order:
    order = current_domain.repository_for(Order).get(command.order_id)
    order.authorize(command.actor_id, command.actor_role)
    return order


def _settle_if_due(order: Order) -> None:
    if not order.awaiting_settlement:
        return
    WalletLedger().credit_for_order(order)
    order.mark_settled()


def _void_pending_payment(order: Order, reason: str) -> None:
    """A payment nobody will collect any more is marked failed."""
    repo = current_domain.repository_for(Payment)
    payment = repo.for_order(order.id)
    if payment is not None and payment.status == PaymentStatus.PENDING.value:
        payment.fail(reason=reason)
        repo.add(payment)


@marketplace.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(AcceptOrder)
    def accept(self, command):
        order = _load_authorized(command)
        order.accept(command.actor_id)
        current_domain.repository_for(Order).add(order)
        return order

    @handle(RejectOrder)
    def reject(self, command):
        order = _load_authorized(command)
        order.reject(command.actor_id, reason=command.reason)
        _void_pending_payment(order, "Order rejected")
        current_domain.repository_for(Order).add(order)
        return order

    @handle(ShipOrder)
    def ship(self, command):
        order = _load_authorized(command)
        order.ship(carrier=command.carrier, tracking_number=command.tracking_number)
        current_domain.repository_for(Order).add(order)
        return order

    @handle(DeliverOrder)
    def deliver(self, command):
        order = _load_authorized(command)
        order.deliver()
        _settle_if_due(order)
        current_domain.repository_for(Order).add(order)
        return order

    @handle(CompleteOrder)
    def complete(self, command):
        order = _load_authorized(command)
        if not order.complete():
            logger.info("order_already_completed", order_id=str(order.id))
        _settle_if_due(order)
        current_domain.repository_for(Order).add(order)
        return order

    @handle(CancelOrder)
    def cancel(self, command):
        order = _load_authorized(command)
        order.cancel(command.actor_id, reason=command.reason)
        _void_pending_payment(order, "Order cancelled")
        current_domain.repository_for(Order).add(order)
        return order
