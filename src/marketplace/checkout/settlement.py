"""Deferred checkout settlement — provider callback and status reconciliation.

The callback's signature is verified before any stored state is read. A
session that is no longer INITIATED answers with its stored outcome, so
providers that redeliver callbacks cause no duplicate orders.
"""

import json

import structlog
from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from marketplace.checkout.orchestrator import CheckoutOrchestrator
from marketplace.checkout.session import CheckoutSession, CheckoutStatus
from marketplace.config import PaymentSettings
from marketplace.domain import marketplace
from marketplace.errors import InsufficientStockError, NotFoundError, PaymentVerificationError
from marketplace.order.order import MONEY_TOLERANCE
from marketplace.payment.gateway import gateway_for
from marketplace.payment.gateway.port import CallbackOutcome, OutcomeStatus
from marketplace.payment.payment import PaymentMethod

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="CheckoutSession")
class SettleExternalPayment:
    fields = Text(required=True)  # JSON: provider-signed pp_* fields


@marketplace.command(part_of="CheckoutSession")
class ReconcileCheckout:
    txn_ref_no = String(required=True, max_length=100)


def _summary(session: CheckoutSession) -> dict:
    return {
        "checkout_id": str(session.id),
        "txn_ref_no": session.txn_ref_no,
        "status": session.status,
        "order_ids": session.created_order_ids,
        "response_code": session.response_code,
        "response_message": session.response_message,
    }


def _session_for(txn_ref_no) -> CheckoutSession:
    session = current_domain.repository_for(CheckoutSession).by_txn_ref(txn_ref_no)
    if session is None:
        raise NotFoundError(f"No checkout for transaction {txn_ref_no}", txn_ref_no=txn_ref_no)
    return session


def apply_outcome(session: CheckoutSession, outcome: CallbackOutcome, orchestrator: CheckoutOrchestrator) -> dict:
    repo = current_domain.repository_for(CheckoutSession)

    if not session.is_open:
        logger.info("checkout_outcome_already_applied", txn_ref_no=session.txn_ref_no, status=session.status)
        return _summary(session)

    if outcome.status is OutcomeStatus.PENDING:
        logger.info("checkout_payment_pending", txn_ref_no=session.txn_ref_no, code=outcome.response_code)
        return _summary(session)

    if outcome.status is OutcomeStatus.FAILED:
        session.fail(response_code=outcome.response_code, reason=outcome.response_message)
        repo.add(session)
        logger.info("checkout_payment_failed", txn_ref_no=session.txn_ref_no, code=outcome.response_code)
        return _summary(session)

    if outcome.amount and abs(outcome.amount - session.amount) > MONEY_TOLERANCE:
        raise PaymentVerificationError(
            f"Paid amount {outcome.amount:.2f} does not match checkout amount {session.amount:.2f}",
            txn_ref_no=session.txn_ref_no,
        )

    try:
        result = orchestrator.settle(session, outcome)
    except InsufficientStockError as exc:
        # Paid, but the stock went to someone else in the meantime
        session.fail(response_code=outcome.response_code, reason="Stock no longer available")
        repo.add(session)
        logger.error("checkout_settlement_stock_unavailable", txn_ref_no=session.txn_ref_no, detail=exc.messages)
        return _summary(session)

    session.settle(
        [order.id for order in result.orders],
        response_code=outcome.response_code,
        response_message=outcome.response_message,
    )
    repo.add(session)
    return _summary(session)


def _orchestrator(method: str, settings: PaymentSettings) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(gateway=gateway_for(method, settings), currency=settings.currency)


@marketplace.command_handler(part_of=CheckoutSession)
class SettlementHandler:
    @handle(SettleExternalPayment)
    def settle_external_payment(self, command):
        fields = json.loads(command.fields) if isinstance(command.fields, str) else command.fields
        settings = PaymentSettings.from_env()
        orchestrator = _orchestrator(PaymentMethod.EXTERNAL.value, settings)

        outcome = orchestrator.gateway.verify_callback(fields)
        session = _session_for(outcome.txn_ref_no)
        return apply_outcome(session, outcome, orchestrator)

    @handle(ReconcileCheckout)
    def reconcile_checkout(self, command):
        session = _session_for(command.txn_ref_no)
        if session.status != CheckoutStatus.INITIATED.value:
            return _summary(session)

        settings = PaymentSettings.from_env()
        orchestrator = _orchestrator(session.payment_method, settings)
        outcome = orchestrator.gateway.check_status(session.txn_ref_no)
        return apply_outcome(session, outcome, orchestrator)
