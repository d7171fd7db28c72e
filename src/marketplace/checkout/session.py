"""CheckoutSession aggregate — an external-payment checkout awaiting its callback.

Orders for an external payment are only created once the provider confirms
the payment. Until then the session holds what is needed to create them: the
priced lines as they were when the buyer was sent to pay, the shipping
address and the amount the provider must confirm.

State Machine:
    INITIATED → SETTLED
    INITIATED → FAILED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransitionError


class CheckoutStatus(Enum):
    INITIATED = "INITIATED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


@marketplace.event(part_of="CheckoutSession")
class CheckoutInitiated:
    __version__ = 1

    checkout_id: Identifier(required=True)
    txn_ref_no: String(required=True)
    buyer_id: Identifier(required=True)
    amount: Float(required=True)
    initiated_at: DateTime(required=True)


@marketplace.event(part_of="CheckoutSession")
class CheckoutSettled:
    __version__ = 1

    checkout_id: Identifier(required=True)
    txn_ref_no: String(required=True)
    order_ids: Text(required=True)
    settled_at: DateTime(required=True)


@marketplace.event(part_of="CheckoutSession")
class CheckoutFailed:
    __version__ = 1

    checkout_id: Identifier(required=True)
    txn_ref_no: String(required=True)
    response_code: String()
    reason: String()
    failed_at: DateTime(required=True)


@marketplace.aggregate
class CheckoutSession:
    txn_ref_no = String(required=True, max_length=100)
    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    payment_method = String(required=True, max_length=30)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="PKR")
    lines = Text(required=True)  # JSON: resolved lines priced at initiation
    shipping_address = Text()  # JSON
    status = String(choices=CheckoutStatus, default=CheckoutStatus.INITIATED.value)
    order_ids = Text()  # JSON list, set on settlement
    response_code = String(max_length=10)
    response_message = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def initiate(cls, txn_ref_no, cart_id, buyer_id, payment_method, amount, lines, currency="PKR", shipping_address=None):
        now = datetime.now(UTC)
        session = cls(
            txn_ref_no=txn_ref_no,
            cart_id=cart_id,
            buyer_id=buyer_id,
            payment_method=payment_method,
            amount=amount,
            currency=currency,
            lines=json.dumps(lines),
            shipping_address=json.dumps(shipping_address) if shipping_address else None,
            status=CheckoutStatus.INITIATED.value,
            created_at=now,
            updated_at=now,
        )
        session.raise_(
            CheckoutInitiated(
                checkout_id=str(session.id),
                txn_ref_no=txn_ref_no,
                buyer_id=str(buyer_id),
                amount=amount,
                initiated_at=now,
            )
        )
        return session

    @property
    def is_open(self) -> bool:
        return self.status == CheckoutStatus.INITIATED.value

    @property
    def line_data(self) -> list[dict]:
        return json.loads(self.lines) if self.lines else []

    @property
    def address_data(self) -> dict | None:
        return json.loads(self.shipping_address) if self.shipping_address else None

    @property
    def created_order_ids(self) -> list[str]:
        return json.loads(self.order_ids) if self.order_ids else []

    def _assert_open(self, target: CheckoutStatus) -> None:
        if not self.is_open:
            raise InvalidTransitionError(
                {"status": [f"Cannot transition checkout from {self.status} to {target.value}"]}
            )

    def settle(self, order_ids, response_code=None, response_message=None):
        self._assert_open(CheckoutStatus.SETTLED)
        now = datetime.now(UTC)
        self.status = CheckoutStatus.SETTLED.value
        self.order_ids = json.dumps([str(i) for i in order_ids])
        self.response_code = response_code
        self.response_message = response_message
        self.updated_at = now
        self.raise_(
            CheckoutSettled(
                checkout_id=str(self.id),
                txn_ref_no=self.txn_ref_no,
                order_ids=self.order_ids,
                settled_at=now,
            )
        )

    def fail(self, response_code=None, reason=None):
        self._assert_open(CheckoutStatus.FAILED)
        now = datetime.now(UTC)
        self.status = CheckoutStatus.FAILED.value
        self.response_code = response_code
        self.response_message = reason
        self.updated_at = now
        self.raise_(
            CheckoutFailed(
                checkout_id=str(self.id),
                txn_ref_no=self.txn_ref_no,
                response_code=response_code,
                reason=reason,
                failed_at=now,
            )
        )


@marketplace.repository(part_of=CheckoutSession)
class CheckoutSessionRepository:
    def by_txn_ref(self, txn_ref_no) -> CheckoutSession | None:
        return self._dao.query.filter(txn_ref_no=txn_ref_no).all().first
