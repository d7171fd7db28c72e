"""Payment aggregate (CQRS) — one per seller order.

Every status change is appended as a PaymentTransaction so the audit trail of
attempts and provider responses survives alongside the current status.
Cash on delivery payments stay PENDING; they are settled physically.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from marketplace.domain import marketplace
from marketplace.payment.events import PaymentRecorded


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    EXTERNAL = "EXTERNAL"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
}


@marketplace.entity(part_of="Payment", limit=None)
class PaymentTransaction:
    status = String(choices=PaymentStatus, required=True)
    amount = Float(required=True, min_value=0.0)
    reference = String(max_length=100)
    response_code = String(max_length=10)
    response_message = String(max_length=500)
    recorded_at = DateTime(required=True)


@marketplace.aggregate
class Payment:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    method = String(choices=PaymentMethod, required=True)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="PKR")
    txn_ref_no = String(max_length=100)
    transactions = HasMany(PaymentTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def record(
        cls,
        order_id,
        buyer_id,
        method,
        amount,
        currency="PKR",
        status=PaymentStatus.PENDING.value,
        txn_ref_no=None,
        response_code=None,
        response_message=None,
    ):
        """Record the payment of a newly placed order with its first transaction."""
        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            buyer_id=buyer_id,
            method=method,
            status=status,
            amount=amount,
            currency=currency,
            txn_ref_no=txn_ref_no,
            created_at=now,
            updated_at=now,
        )
        payment.add_transactions(
            PaymentTransaction(
                status=status,
                amount=amount,
                reference=txn_ref_no,
                response_code=response_code,
                response_message=response_message,
                recorded_at=now,
            )
        )
        payment.raise_(
            PaymentRecorded(
                payment_id=str(payment.id),
                order_id=str(order_id),
                method=method,
                status=status,
                amount=amount,
                recorded_at=now,
            )
        )
        return payment

    def _assert_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition payment from {current.value} to {target_status.value}"]})

    def fail(self, reason=None, response_code=None):
        self._assert_can_transition(PaymentStatus.FAILED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.FAILED.value
        self.updated_at = now
        self.add_transactions(
            PaymentTransaction(
                status=PaymentStatus.FAILED.value,
                amount=self.amount,
                reference=self.txn_ref_no,
                response_code=response_code,
                response_message=reason,
                recorded_at=now,
            )
        )


@marketplace.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id) -> Payment | None:
        return self._dao.query.filter(order_id=str(order_id)).all().first
