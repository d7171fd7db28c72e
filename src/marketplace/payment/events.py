"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payment")
class PaymentRecorded:
    __version__ = 1

    payment_id: Identifier(required=True)
    order_id: Identifier(required=True)
    method: String(required=True)
    status: String(required=True)
    amount: Float(required=True)
    recorded_at: DateTime(required=True)

