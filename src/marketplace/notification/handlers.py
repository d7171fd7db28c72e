"""Event handlers that tell buyers and sellers what happened."""

from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notification.sink import Notice, notify
from marketplace.order.events import (
    OrderAccepted,
    OrderCancelled,
    OrderCompleted,
    OrderPlaced,
    OrderRejected,
    OrderShipped,
)
from marketplace.order.order import Order
from marketplace.withdrawal.events import WithdrawalCompleted, WithdrawalFailed
from marketplace.withdrawal.withdrawal import Withdrawal


@marketplace.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        """Tell the seller a new order is waiting for acceptance."""
        notify(
            Notice(
                recipient_id=str(event.seller_id),
                kind="new_order",
                subject=f"New order {event.order_number}",
                context={"order_id": str(event.order_id), "amount": event.amount, "currency": event.currency},
            )
        )

    @handle(OrderAccepted)
    def on_order_accepted(self, event: OrderAccepted) -> None:
        notify(
            Notice(
                recipient_id=str(event.buyer_id),
                kind="order_accepted",
                subject="Your order was accepted",
                context={"order_id": str(event.order_id)},
            )
        )

    @handle(OrderRejected)
    def on_order_rejected(self, event: OrderRejected) -> None:
        notify(
            Notice(
                recipient_id=str(event.buyer_id),
                kind="order_rejected",
                subject="Your order was rejected",
                context={"order_id": str(event.order_id), "reason": event.reason or ""},
            )
        )

    @handle(OrderShipped)
    def on_order_shipped(self, event: OrderShipped) -> None:
        notify(
            Notice(
                recipient_id=str(event.buyer_id),
                kind="order_shipped",
                subject="Your order is on its way",
                context={
                    "order_id": str(event.order_id),
                    "carrier": event.carrier,
                    "tracking_number": event.tracking_number,
                },
            )
        )

    @handle(OrderCompleted)
    def on_order_completed(self, event: OrderCompleted) -> None:
        notify(
            Notice(
                recipient_id=str(event.seller_id),
                kind="order_completed",
                subject="Order completed, proceeds credited",
                context={"order_id": str(event.order_id), "amount": event.amount},
            )
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        for recipient in {str(event.buyer_id), str(event.seller_id)}:
            notify(
                Notice(
                    recipient_id=recipient,
                    kind="order_cancelled",
                    subject="Order cancelled",
                    context={"order_id": str(event.order_id), "reason": event.reason or ""},
                )
            )


@marketplace.event_handler(part_of=Withdrawal)
class WithdrawalNotificationHandler:
    @handle(WithdrawalCompleted)
    def on_withdrawal_completed(self, event: WithdrawalCompleted) -> None:
        notify(
            Notice(
                recipient_id=str(event.seller_id),
                kind="withdrawal_completed",
                subject="Your withdrawal was paid out",
                context={"withdrawal_id": str(event.withdrawal_id), "amount": event.amount},
            )
        )

    @handle(WithdrawalFailed)
    def on_withdrawal_failed(self, event: WithdrawalFailed) -> None:
        notify(
            Notice(
                recipient_id=str(event.seller_id),
                kind="withdrawal_failed",
                subject="Your withdrawal failed, funds returned to your wallet",
                context={"withdrawal_id": str(event.withdrawal_id), "reason": event.reason or ""},
            )
        )
