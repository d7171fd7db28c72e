"""WalletLedger — the service the rest of the context uses to touch wallets.

Constructed per unit of work with the collaborators it needs, so a command
handler decides exactly which repository and commission registry take part.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from marketplace.commission.registry import CommissionRegistry
from marketplace.config import WalletSettings
from marketplace.order.order import Order, money
from marketplace.wallet.wallet import Wallet, _aware

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreditBreakdown:
    gross_amount: float
    commission_amount: float

    @property
    def net_amount(self) -> float:
        return money(self.gross_amount - self.commission_amount)


class WalletLedger:
    def __init__(self, repository=None, commissions: CommissionRegistry | None = None, settings: WalletSettings | None = None):
        self._repository = repository
        self.commissions = commissions or CommissionRegistry()
        self.settings = settings or WalletSettings.from_env()

    @property
    def repository(self):
        if self._repository is None:
            self._repository = current_domain.repository_for(Wallet)
        return self._repository

    def get_or_open(self, seller_id, currency="PKR") -> Wallet:
        wallet = self.repository.for_seller(seller_id)
        if wallet is None:
            wallet = Wallet.open(seller_id=seller_id, currency=currency)
            logger.info("wallet_opened", seller_id=str(seller_id))
        return wallet

    def breakdown(self, order: Order) -> CreditBreakdown:
        """Commission is charged per item at its category's current rate."""
        commission = sum(
            item.unit_price * item.quantity * self.commissions.rate_for(item.category_id) for item in order.items
        )
        return CreditBreakdown(gross_amount=money(order.amount), commission_amount=money(commission))

    def credit_for_order(self, order: Order, now: datetime | None = None) -> Wallet:
        """Credit a completed order's net proceeds to its seller, at most once."""
        wallet = self.get_or_open(order.seller_id, currency=order.currency)
        split = self.breakdown(order)
        entry = wallet.credit_order(
            order_id=str(order.id),
            gross_amount=split.gross_amount,
            commission_amount=split.commission_amount,
            hold_days=self.settings.hold_days,
            now=now,
        )
        if entry is None:
            logger.info("wallet_credit_skipped", order_id=str(order.id), reason="already_credited")
        else:
            logger.info(
                "wallet_credited",
                seller_id=str(order.seller_id),
                order_id=str(order.id),
                net_amount=entry.amount,
                commission_amount=split.commission_amount,
            )
        self.repository.add(wallet)
        return wallet

    def release(self, wallet: Wallet, as_of: datetime | None = None) -> float:
        released = wallet.release_matured(as_of or datetime.now(UTC))
        if released:
            self.repository.add(wallet)
            logger.info("wallet_funds_released", seller_id=str(wallet.seller_id), amount=released)
        return released


def summarize(wallet: Wallet) -> dict:
    return {
        "wallet_id": str(wallet.id),
        "seller_id": str(wallet.seller_id),
        "balance": wallet.balance,
        "available_balance": wallet.available_balance,
        "pending_balance": wallet.pending_balance,
        "currency": wallet.currency,
    }


def transaction_page(wallet: Wallet, page: int = 1, page_size: int = 20, type_=None) -> dict:
    """Newest-first slice of a wallet's ledger."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), 100)
    entries = [t for t in wallet.transactions if type_ is None or t.type == type_]
    entries.sort(key=lambda t: _aware(t.created_at), reverse=True)
    start = (page - 1) * page_size
    return {
        "items": entries[start : start + page_size],
        "total": len(entries),
        "page": page,
        "page_size": page_size,
    }
