"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A seller order was created from a checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    checkout_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    item_count = Integer(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderAccepted:
    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    accepted_by = Identifier(required=True)
    accepted_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderRejected:
    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String()
    rejected_by = Identifier(required=True)
    rejected_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCompleted:
    """The order was fulfilled; the seller's wallet is credited for it."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    amount = Float(required=True)
    completed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    reason = String()
    cancelled_by = Identifier(required=True)
    cancelled_at = DateTime(required=True)
