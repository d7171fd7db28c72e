"""Fund release — lazy per wallet on read, plus an idempotent sweep.

Reads go through ``ReleaseHeldFunds`` so a seller always sees matured credits
as available. ``ReleaseAllHeldFunds`` runs the same release over every wallet
for deployments that schedule it; running it twice moves nothing the second
time.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.wallet.ledger import WalletLedger, summarize
from marketplace.wallet.wallet import Wallet

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Wallet")
class ReleaseHeldFunds:
    """Release one seller's matured credits and return the balance summary."""

    seller_id = Identifier(required=True)
    as_of = DateTime()


@marketplace.command(part_of="Wallet")
class ReleaseAllHeldFunds:
    as_of = DateTime()


@marketplace.command_handler(part_of=Wallet)
class ReleaseFundsHandler:
    @handle(ReleaseHeldFunds)
    def release_held_funds(self, command):
        repo = current_domain.repository_for(Wallet)
        ledger = WalletLedger(repository=repo)
        # Sellers without sales yet still get an (empty) wallet
        wallet = ledger.get_or_open(command.seller_id)
        ledger.release(wallet, as_of=command.as_of or datetime.now(UTC))
        repo.add(wallet)
        return summarize(wallet)

    @handle(ReleaseAllHeldFunds)
    def release_all_held_funds(self, command):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(Wallet)
        ledger = WalletLedger(repository=repo)

        wallets_touched = 0
        total = 0.0
        for wallet in repo.all_wallets():
            if not wallet.has_matured_credits(as_of):
                continue
            total += ledger.release(wallet, as_of=as_of)
            wallets_touched += 1

        logger.info("held_funds_sweep_completed", wallets=wallets_touched, amount=round(total, 2))
        return {"wallets": wallets_touched, "amount": round(total, 2)}
