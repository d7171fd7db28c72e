"""Order aggregate (CQRS) — one seller's share of a checkout.

A checkout spanning several sellers produces one Order per seller. Items keep
the unit price the buyer paid, so later catalogue price changes never alter a
placed order.

State Machine:
    PENDING → ACCEPTED → SHIPPED → DELIVERED → COMPLETED
    SHIPPED → COMPLETED
    PENDING → REJECTED
    PENDING, ACCEPTED → CANCELLED

Only the order's seller or an admin may move an order along. Reaching
DELIVERED or COMPLETED makes the order due for settlement into the seller's
wallet, which happens once; ``settled`` records that it did.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransitionError, UnauthorizedTransitionError
from marketplace.order.events import (
    OrderAccepted,
    OrderCancelled,
    OrderCompleted,
    OrderDelivered,
    OrderPlaced,
    OrderRejected,
    OrderShipped,
)

# Amounts are compared at currency precision
MONEY_TOLERANCE = 0.005

COD_CARRIER = "Cash on Delivery"
COD_SHIPPING_NOTES = "Payment to be made on delivery"
DEFAULT_DELIVERY_DAYS = 7


class OrderStatus(Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ActorRole(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.COMPLETED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
    OrderStatus.REJECTED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.COMPLETED: set(),  # Terminal
}

_SETTLEMENT_STATES = {OrderStatus.DELIVERED, OrderStatus.COMPLETED}


def money(value: float) -> float:
    return round(float(value), 2)


@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where the checkout ships to. Recorded on the first order of a checkout."""

    recipient = String(required=True, max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class Shipment:
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    shipping_notes = String(max_length=500)
    shipped_date = DateTime()
    delivery_date = DateTime()


@marketplace.entity(part_of="Order", limit=None)
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    category_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@marketplace.aggregate(limit=None)
class Order:
    order_number = String(required=True, max_length=50)
    checkout_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    items = HasMany(OrderItem)
    amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="PKR")
    payment_method = String(required=True, max_length=30)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    shipping_address = ValueObject(ShippingAddress)
    shipment = ValueObject(Shipment)
    settled = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def amount_must_equal_sum_of_items(self):
        total = sum(item.line_total for item in self.items)
        if abs((self.amount or 0.0) - total) > MONEY_TOLERANCE:
            raise ValidationError({"amount": [f"Order amount {self.amount} does not match its items ({total:.2f})"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        checkout_id,
        buyer_id,
        seller_id,
        lines,
        payment_method,
        currency="PKR",
        shipping_address=None,
        shipment=None,
    ):
        """Create a seller order from resolved lines.

        Args:
            lines: List of dicts with product_id, variant_id, category_id,
                quantity and unit_price.
        """
        if not lines:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            checkout_id=checkout_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            currency=currency,
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            shipping_address=shipping_address,
            shipment=shipment,
            created_at=now,
            updated_at=now,
        )

        with atomic_change(order):
            for line in lines:
                order.add_items(
                    OrderItem(
                        product_id=line["product_id"],
                        variant_id=line["variant_id"],
                        category_id=line.get("category_id"),
                        quantity=line["quantity"],
                        unit_price=line["unit_price"],
                    )
                )
            order.amount = money(sum(item.line_total for item in order.items))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                checkout_id=str(checkout_id),
                buyer_id=str(buyer_id),
                seller_id=str(seller_id),
                amount=order.amount,
                currency=currency,
                item_count=len(order.items),
                payment_method=payment_method,
                placed_at=now,
            )
        )
        return order

    @staticmethod
    def cash_on_delivery_shipment(order_number) -> Shipment:
        now = datetime.now(UTC)
        return Shipment(
            carrier=COD_CARRIER,
            tracking_number=f"COD-{order_number}",
            shipping_notes=COD_SHIPPING_NOTES,
            delivery_date=now + timedelta(days=DEFAULT_DELIVERY_DAYS),
        )

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def authorize(self, actor_id, actor_role) -> None:
        """Only the order's seller or an admin may change its status."""
        if actor_role == ActorRole.ADMIN.value:
            return
        if actor_role == ActorRole.SELLER.value and str(actor_id) == str(self.seller_id):
            return
        raise UnauthorizedTransitionError(
            f"Actor {actor_id} ({actor_role}) may not change order {self.order_number}",
            order_id=str(self.id),
            actor_id=str(actor_id),
        )

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    @property
    def awaiting_settlement(self) -> bool:
        return OrderStatus(self.status) in _SETTLEMENT_STATES and not self.settled

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def accept(self, actor_id):
        self._assert_can_transition(OrderStatus.ACCEPTED)
        now = datetime.now(UTC)
        self.status = OrderStatus.ACCEPTED.value
        self.updated_at = now
        self.raise_(
            OrderAccepted(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                accepted_by=str(actor_id),
                accepted_at=now,
            )
        )

    def reject(self, actor_id, reason=None):
        self._assert_can_transition(OrderStatus.REJECTED)
        now = datetime.now(UTC)
        self.status = OrderStatus.REJECTED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            OrderRejected(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                reason=reason,
                rejected_by=str(actor_id),
                rejected_at=now,
            )
        )

    def ship(self, carrier=None, tracking_number=None):
        self._assert_can_transition(OrderStatus.SHIPPED)
        now = datetime.now(UTC)
        current = self.shipment
        carrier = carrier or (current.carrier if current else None)
        tracking_number = tracking_number or (current.tracking_number if current else None)
        if not carrier or not tracking_number:
            raise ValidationError({"shipment": ["Carrier and tracking number are required to ship"]})

        self.shipment = Shipment(
            carrier=carrier,
            tracking_number=tracking_number,
            shipping_notes=current.shipping_notes if current else None,
            shipped_date=now,
            delivery_date=current.delivery_date if current else None,
        )
        self.status = OrderStatus.SHIPPED.value
        self.updated_at = now
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                carrier=carrier,
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = datetime.now(UTC)
        current = self.shipment
        self.shipment = Shipment(
            carrier=current.carrier if current else None,
            tracking_number=current.tracking_number if current else None,
            shipping_notes=current.shipping_notes if current else None,
            shipped_date=current.shipped_date if current else None,
            delivery_date=now,
        )
        self.status = OrderStatus.DELIVERED.value
        self.updated_at = now
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                delivered_at=now,
            )
        )

    def complete(self) -> bool:
        """Complete the order. Returns False when it was already completed."""
        if OrderStatus(self.status) == OrderStatus.COMPLETED:
            return False

        self._assert_can_transition(OrderStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = OrderStatus.COMPLETED.value
        self.updated_at = now
        self.raise_(
            OrderCompleted(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                amount=self.amount,
                completed_at=now,
            )
        )
        return True

    def cancel(self, actor_id, reason=None):
        self._assert_can_transition(OrderStatus.CANCELLED)
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                buyer_id=str(self.buyer_id),
                reason=reason,
                cancelled_by=str(actor_id),
                cancelled_at=now,
            )
        )

    def mark_settled(self):
        if self.settled:
            raise ValidationError({"settled": [f"Order {self.order_number} has already been settled"]})
        self.settled = True
        self.updated_at = datetime.now(UTC)


@marketplace.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def for_checkout(self, checkout_id) -> list[Order]:
        return self._dao.query.filter(checkout_id=str(checkout_id)).order_by("created_at").all().items

    def for_seller(self, seller_id, status=None) -> list[Order]:
        filters = {"seller_id": str(seller_id)}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).order_by("-created_at").all().items
