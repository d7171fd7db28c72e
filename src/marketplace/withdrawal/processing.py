"""Withdrawal processing — admin transitions and seller cancellation."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import UnauthorizedTransitionError
from marketplace.order.order import ActorRole
from marketplace.wallet.wallet import TransactionStatus, Wallet
from marketplace.withdrawal.withdrawal import Withdrawal

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Withdrawal")
class StartWithdrawalProcessing:
    withdrawal_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


@marketplace.command(part_of="Withdrawal")
class CompleteWithdrawal:
    withdrawal_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


@marketplace.command(part_of="Withdrawal")
class FailWithdrawal:
    withdrawal_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    reason = String(required=True, max_length=500)


@marketplace.command(part_of="Withdrawal")
class CancelWithdrawal:
    withdrawal_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)


def _require_admin(command) -> None:
    if command.actor_role != ActorRole.ADMIN.value:
        raise UnauthorizedTransitionError(
            "Only an admin may process withdrawals",
            withdrawal_id=str(command.withdrawal_id),
            actor_id=str(command.actor_id),
        )


@marketplace.command_handler(part_of=Withdrawal)
class ProcessWithdrawalHandler:
    @handle(StartWithdrawalProcessing)
    def start_processing(self, command):
        _require_admin(command)
        repo = current_domain.repository_for(Withdrawal)
        withdrawal = repo.get(command.withdrawal_id)
        withdrawal.start_processing()
        repo.add(withdrawal)
        return withdrawal

    @handle(CompleteWithdrawal)
    def complete(self, command):
        _require_admin(command)
        repo = current_domain.repository_for(Withdrawal)
        withdrawal = repo.get(command.withdrawal_id)
        withdrawal.complete()

        wallet_repo = current_domain.repository_for(Wallet)
        wallet = wallet_repo.get(withdrawal.wallet_id)
        wallet.settle_withdrawal(str(withdrawal.id))

        repo.add(withdrawal)
        wallet_repo.add(wallet)
        logger.info("withdrawal_completed", withdrawal_id=str(withdrawal.id), amount=withdrawal.amount)
        return withdrawal

    @handle(FailWithdrawal)
    def fail(self, command):
        _require_admin(command)
        repo = current_domain.repository_for(Withdrawal)
        withdrawal = repo.get(command.withdrawal_id)
        withdrawal.fail(command.reason)

        wallet_repo = current_domain.repository_for(Wallet)
        wallet = wallet_repo.get(withdrawal.wallet_id)
        wallet.restore_withdrawal(str(withdrawal.id), TransactionStatus.FAILED)

        repo.add(withdrawal)
        wallet_repo.add(wallet)
        logger.info("withdrawal_failed", withdrawal_id=str(withdrawal.id), reason=command.reason)
        return withdrawal

    @handle(CancelWithdrawal)
    def cancel(self, command):
        repo = current_domain.repository_for(Withdrawal)
        withdrawal = repo.get(command.withdrawal_id)
        is_owner = command.actor_role == ActorRole.SELLER.value and str(command.actor_id) == str(withdrawal.seller_id)
        if not is_owner and command.actor_role != ActorRole.ADMIN.value:
            raise UnauthorizedTransitionError(
                "Only the requesting seller or an admin may cancel a withdrawal",
                withdrawal_id=str(withdrawal.id),
                actor_id=str(command.actor_id),
            )
        withdrawal.cancel()

        wallet_repo = current_domain.repository_for(Wallet)
        wallet = wallet_repo.get(withdrawal.wallet_id)
        wallet.restore_withdrawal(str(withdrawal.id), TransactionStatus.CANCELLED)

        repo.add(withdrawal)
        wallet_repo.add(wallet)
        logger.info("withdrawal_cancelled", withdrawal_id=str(withdrawal.id))
        return withdrawal
