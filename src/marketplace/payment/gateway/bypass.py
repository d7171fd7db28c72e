"""Bypass variant of the external gateway for environments without credentials.

Always reports success and never contacts the provider. Settings refuse to
enable it under ``PROTEAN_ENV=production``.
"""

import structlog

from marketplace.payment.gateway.external import from_minor_units, new_txn_ref_no
from marketplace.payment.gateway.port import (
    CallbackOutcome,
    OutcomeStatus,
    PaymentGateway,
    PaymentInitiation,
)
from marketplace.payment.payment import PaymentMethod, PaymentStatus

logger = structlog.get_logger(__name__)

BYPASS_CODE = "000"
BYPASS_MESSAGE = "Payment Successful (BYPASS MODE)"


class BypassGateway(PaymentGateway):
    method = PaymentMethod.EXTERNAL.value

    def new_reference(self) -> str:
        return new_txn_ref_no()

    def initiate(self, txn_ref_no, amount, currency, bill_reference, description) -> PaymentInitiation:
        logger.warning("bypass_payment_initiated", txn_ref_no=txn_ref_no, amount=amount)
        return PaymentInitiation(
            txn_ref_no=txn_ref_no,
            defers_order_creation=False,
            payment_status=PaymentStatus.COMPLETED.value,
            response_code=BYPASS_CODE,
            response_message=BYPASS_MESSAGE,
        )

    def verify_callback(self, fields: dict) -> CallbackOutcome:
        return CallbackOutcome(
            status=OutcomeStatus.COMPLETED,
            txn_ref_no=str(fields.get("pp_TxnRefNo") or ""),
            amount=from_minor_units(fields.get("pp_Amount")),
            response_code=BYPASS_CODE,
            response_message=BYPASS_MESSAGE,
        )

    def check_status(self, txn_ref_no: str) -> CallbackOutcome:
        return CallbackOutcome(
            status=OutcomeStatus.COMPLETED,
            txn_ref_no=txn_ref_no,
            amount=0.0,
            response_code=BYPASS_CODE,
            response_message="Payment verified (BYPASS MODE)",
        )
