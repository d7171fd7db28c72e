"""External signed-field gateway (JazzCash mobile wallet protocol).

Requests and callbacks are flat ``pp_*`` field maps. Both directions are signed
the same way: sort the keys, concatenate the non-empty values except the
signature itself, append the shared secret, SHA-256, uppercase hex.
"""

import hashlib
import hmac
import secrets
import string
import time
from datetime import UTC, datetime

import httpx
import structlog

from marketplace.config import PaymentSettings
from marketplace.errors import PaymentInitiationError, PaymentVerificationError
from marketplace.payment.gateway.port import (
    CallbackOutcome,
    OutcomeStatus,
    PaymentGateway,
    PaymentInitiation,
)
from marketplace.payment.payment import PaymentMethod, PaymentStatus

logger = structlog.get_logger(__name__)

SIGNATURE_FIELD = "pp_SecureHash"

SANDBOX_BASE_URL = "https://sandbox.jazzcash.com.pk"
PRODUCTION_BASE_URL = "https://api.jazzcash.com.pk"
PAY_PATH = "/ApplicationAPI/Pay.aspx"
INQUIRY_PATH = "/ApplicationAPI/API/PaymentInquiry/Inquire"

_COMPLETED_CODES = {"000", "106"}  # 106: already processed
_FAILED_CODES = {"101", "102", "103", "104", "105", "107"}  # 107: timeout

_DEFAULT_MESSAGES = {
    "000": "Payment successful",
    "101": "Transaction declined",
    "102": "Insufficient funds",
    "103": "Invalid merchant",
    "104": "Invalid amount",
    "105": "Invalid transaction reference",
    "106": "Transaction already processed",
    "107": "Transaction timeout",
}

_BASE36 = string.digits + string.ascii_lowercase


def secure_hash(fields: dict, secret: str) -> str:
    payload = "".join(
        str(fields[key]) for key in sorted(fields) if key != SIGNATURE_FIELD and fields[key] not in (None, "")
    )
    return hashlib.sha256((payload + secret).encode("utf-8")).hexdigest().upper()


def outcome_for_code(code: str) -> OutcomeStatus:
    if code in _COMPLETED_CODES:
        return OutcomeStatus.COMPLETED
    if code in _FAILED_CODES:
        return OutcomeStatus.FAILED
    return OutcomeStatus.PENDING


def new_txn_ref_no() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"JAZZ_{int(time.time() * 1000)}_{suffix}"


def to_minor_units(amount: float) -> str:
    return str(int(round(amount * 100)))


def from_minor_units(value) -> float:
    try:
        return round(float(value or 0) / 100, 2)
    except (TypeError, ValueError):
        return 0.0


class ExternalGateway(PaymentGateway):
    method = PaymentMethod.EXTERNAL.value

    def __init__(self, settings: PaymentSettings, client: httpx.Client | None = None):
        self.settings = settings
        self._client = client

    @property
    def base_url(self) -> str:
        return SANDBOX_BASE_URL if self.settings.sandbox else PRODUCTION_BASE_URL

    def new_reference(self) -> str:
        return new_txn_ref_no()

    def sign(self, fields: dict) -> dict:
        signed = dict(fields)
        signed[SIGNATURE_FIELD] = secure_hash(fields, self.settings.secret)
        return signed

    def initiate(self, txn_ref_no, amount, currency, bill_reference, description) -> PaymentInitiation:
        if amount <= 0:
            raise PaymentInitiationError("Payment amount must be positive", txn_ref_no=txn_ref_no)

        fields = self.sign(
            {
                "pp_MerchantID": self.settings.merchant_id,
                "pp_Password": self.settings.password,
                "pp_TxnType": "MWALLET",
                "pp_TxnRefNo": txn_ref_no,
                "pp_Amount": to_minor_units(amount),
                "pp_TxnCurrency": currency,
                "pp_TxnDateTime": datetime.now(UTC).strftime("%Y%m%d%H%M%S"),
                "pp_BillReference": bill_reference,
                "pp_Description": description,
                "pp_Language": "EN",
                "pp_Version": "1.1",
                "pp_ReturnURL": self.settings.return_url,
            }
        )
        logger.info("external_payment_initiated", txn_ref_no=txn_ref_no, amount=amount, sandbox=self.settings.sandbox)
        return PaymentInitiation(
            txn_ref_no=txn_ref_no,
            defers_order_creation=True,
            payment_status=PaymentStatus.PENDING.value,
            payment_url=f"{self.base_url}{PAY_PATH}",
            fields=fields,
        )

    def _verify_signature(self, fields: dict) -> None:
        received = fields.get(SIGNATURE_FIELD) or ""
        expected = secure_hash(fields, self.settings.secret)
        if not received or not hmac.compare_digest(received.upper(), expected):
            logger.warning("callback_signature_mismatch", txn_ref_no=fields.get("pp_TxnRefNo"))
            raise PaymentVerificationError(
                "Invalid secure hash on payment callback",
                txn_ref_no=fields.get("pp_TxnRefNo"),
            )

    def _outcome(self, fields: dict) -> CallbackOutcome:
        code = str(fields.get("pp_ResponseCode") or "")
        return CallbackOutcome(
            status=outcome_for_code(code),
            txn_ref_no=str(fields.get("pp_TxnRefNo") or ""),
            amount=from_minor_units(fields.get("pp_Amount")),
            response_code=code,
            response_message=fields.get("pp_ResponseMessage") or _DEFAULT_MESSAGES.get(code, "Payment status unknown"),
        )

    def verify_callback(self, fields: dict) -> CallbackOutcome:
        self._verify_signature(fields)
        return self._outcome(fields)

    def check_status(self, txn_ref_no: str) -> CallbackOutcome:
        """Query the provider's inquiry API with a bounded timeout."""
        request_fields = self.sign(
            {
                "pp_MerchantID": self.settings.merchant_id,
                "pp_Password": self.settings.password,
                "pp_TxnRefNo": txn_ref_no,
                "pp_Version": "1.1",
            }
        )
        client = self._client or httpx.Client(timeout=self.settings.timeout_seconds)
        try:
            response = client.post(f"{self.base_url}{INQUIRY_PATH}", json=request_fields)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise PaymentInitiationError("Payment provider timed out", txn_ref_no=txn_ref_no) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PaymentInitiationError(f"Payment provider inquiry failed: {exc}", txn_ref_no=txn_ref_no) from exc
        finally:
            if self._client is None:
                client.close()

        if SIGNATURE_FIELD in body:
            self._verify_signature(body)
        body.setdefault("pp_TxnRefNo", txn_ref_no)
        return self._outcome(body)
