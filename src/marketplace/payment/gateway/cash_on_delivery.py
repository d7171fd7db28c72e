"""Cash on delivery — no provider, the courier collects the money."""

import secrets
import string
import time

from marketplace.errors import PaymentVerificationError
from marketplace.payment.gateway.port import CallbackOutcome, PaymentGateway, PaymentInitiation
from marketplace.payment.payment import PaymentMethod, PaymentStatus


class CashOnDeliveryGateway(PaymentGateway):
    method = PaymentMethod.CASH_ON_DELIVERY.value

    def new_reference(self) -> str:
        suffix = "".join(secrets.choice(string.digits + string.ascii_uppercase) for _ in range(3))
        return f"COD-{int(time.time() * 1000)}-{suffix}"

    def initiate(self, txn_ref_no, amount, currency, bill_reference, description) -> PaymentInitiation:
        return PaymentInitiation(
            txn_ref_no=txn_ref_no,
            defers_order_creation=False,
            payment_status=PaymentStatus.PENDING.value,
        )

    def verify_callback(self, fields: dict) -> CallbackOutcome:
        raise PaymentVerificationError("Cash on delivery payments have no provider callback")

    def check_status(self, txn_ref_no: str) -> CallbackOutcome:
        raise PaymentVerificationError("Cash on delivery payments have no provider status")
