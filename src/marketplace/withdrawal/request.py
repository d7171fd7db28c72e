"""Withdrawal request — command and handler.

Matured credits are released first so the balance check sees everything the
seller is entitled to. The wallet hold and the withdrawal record are written
in the same unit of work; a failed balance check writes neither.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.wallet.ledger import WalletLedger
from marketplace.wallet.wallet import Wallet
from marketplace.withdrawal.withdrawal import Withdrawal, WithdrawalMethod

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Withdrawal")
class RequestWithdrawal:
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    method = String(choices=WithdrawalMethod, default=WithdrawalMethod.BANK_TRANSFER.value)
    details = Text()  # JSON: payout details


@marketplace.command_handler(part_of=Withdrawal)
class RequestWithdrawalHandler:
    @handle(RequestWithdrawal)
    def request_withdrawal(self, command):
        details = json.loads(command.details) if isinstance(command.details, str) else (command.details or {})

        wallet_repo = current_domain.repository_for(Wallet)
        ledger = WalletLedger(repository=wallet_repo)
        # Opened on first use, as a wallet read would
        wallet = ledger.get_or_open(command.seller_id)
        ledger.release(wallet)

        withdrawal = Withdrawal.request(
            wallet_id=str(wallet.id),
            seller_id=command.seller_id,
            amount=command.amount,
            currency=wallet.currency,
            method=command.method,
            details=details,
        )
        wallet.hold_for_withdrawal(str(withdrawal.id), withdrawal.amount)

        wallet_repo.add(wallet)
        current_domain.repository_for(Withdrawal).add(withdrawal)

        logger.info(
            "withdrawal_requested",
            seller_id=str(command.seller_id),
            withdrawal_id=str(withdrawal.id),
            amount=withdrawal.amount,
        )
        return withdrawal
