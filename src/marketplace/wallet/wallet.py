"""Wallet aggregate (CQRS) — a seller's balance and its ledger.

The transactions are the ledger. The three balance fields are derived from it
and must always reconcile: ``balance == available_balance + pending_balance``.
Every mutation touching more than one balance runs inside ``atomic_change`` so
the invariant is checked once the change is whole.

Ledger entries:
    CREDIT   order proceeds net of commission, PENDING until ``hold_until``
    RELEASE  records a matured CREDIT moving from pending to available
    HOLD     funds reserved for a withdrawal request
    DEBIT    a completed withdrawal paid out
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientFundsError
from marketplace.order.order import MONEY_TOLERANCE, money
from marketplace.wallet.events import (
    FundsHeldForWithdrawal,
    FundsReleased,
    WalletCredited,
    WalletOpened,
    WithdrawalFundsRestored,
    WithdrawalFundsSettled,
)


class TransactionType(Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    HOLD = "HOLD"
    RELEASE = "RELEASE"


class TransactionStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


def _aware(value: datetime | None) -> datetime | None:
    # Some providers hand back naive datetimes; everything here is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@marketplace.entity(part_of="Wallet", limit=None)
class WalletTransaction:
    type = String(choices=TransactionType, required=True)
    status = String(choices=TransactionStatus, required=True)
    amount = Float(required=True, min_value=0.0)
    order_id = Identifier()
    withdrawal_id = Identifier()
    gross_amount = Float()
    commission_amount = Float()
    commission_rate = Float()
    hold_until = DateTime()
    released_at = DateTime()
    description = String(max_length=500)
    created_at = DateTime(required=True)

    def matured(self, as_of: datetime) -> bool:
        return (
            self.type == TransactionType.CREDIT.value
            and self.status == TransactionStatus.PENDING.value
            and self.hold_until is not None
            and _aware(self.hold_until) <= as_of
        )


@marketplace.aggregate(limit=None)
class Wallet:
    seller_id = Identifier(required=True)
    balance = Float(default=0.0)
    available_balance = Float(default=0.0, min_value=0.0)
    pending_balance = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="PKR")
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def balance_must_reconcile(self):
        expected = (self.available_balance or 0.0) + (self.pending_balance or 0.0)
        if abs((self.balance or 0.0) - expected) > MONEY_TOLERANCE:
            raise ValidationError(
                {"balance": [f"Balance {self.balance} does not equal available plus pending ({expected:.2f})"]}
            )

    @classmethod
    def open(cls, seller_id, currency="PKR"):
        now = datetime.now(UTC)
        wallet = cls(seller_id=seller_id, currency=currency, created_at=now, updated_at=now)
        wallet.raise_(
            WalletOpened(
                wallet_id=str(wallet.id),
                seller_id=str(seller_id),
                currency=currency,
                opened_at=now,
            )
        )
        return wallet

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def credit_for(self, order_id) -> WalletTransaction | None:
        return next(
            (
                t
                for t in self.transactions
                if t.type == TransactionType.CREDIT.value and str(t.order_id) == str(order_id)
            ),
            None,
        )

    def hold_for(self, withdrawal_id) -> WalletTransaction | None:
        return next(
            (
                t
                for t in self.transactions
                if t.type == TransactionType.HOLD.value and str(t.withdrawal_id) == str(withdrawal_id)
            ),
            None,
        )

    def has_matured_credits(self, as_of: datetime | None = None) -> bool:
        as_of = _aware(as_of) or datetime.now(UTC)
        return any(t.matured(as_of) for t in self.transactions)

    # -------------------------------------------------------------------
    # Credits and releases
    # -------------------------------------------------------------------
    def credit_order(
        self,
        order_id,
        gross_amount: float,
        commission_amount: float,
        hold_days: int,
        now: datetime | None = None,
    ) -> WalletTransaction | None:
        """Credit an order's net proceeds as pending funds.

        Returns None when the order was already credited.
        """
        if self.credit_for(order_id) is not None:
            return None

        now = now or datetime.now(UTC)
        gross_amount = money(gross_amount)
        commission_amount = money(commission_amount)
        net_amount = money(gross_amount - commission_amount)
        if net_amount < 0:
            raise ValidationError({"commission": ["Commission cannot exceed the order amount"]})
        hold_until = now + timedelta(days=hold_days)
        rate = round(commission_amount / gross_amount, 6) if gross_amount else 0.0

        entry = WalletTransaction(
            type=TransactionType.CREDIT.value,
            status=TransactionStatus.PENDING.value,
            amount=net_amount,
            order_id=order_id,
            gross_amount=gross_amount,
            commission_amount=commission_amount,
            commission_rate=rate,
            hold_until=hold_until,
            description=f"Sale proceeds for order {order_id}",
            created_at=now,
        )

        with atomic_change(self):
            self.add_transactions(entry)
            self.pending_balance = money(self.pending_balance + net_amount)
            self.balance = money(self.balance + net_amount)
            self.updated_at = now

        self.raise_(
            WalletCredited(
                wallet_id=str(self.id),
                seller_id=str(self.seller_id),
                order_id=str(order_id),
                gross_amount=gross_amount,
                commission_amount=commission_amount,
                net_amount=net_amount,
                hold_until=hold_until,
            )
        )
        return entry

    def release_matured(self, as_of: datetime | None = None) -> float:
        """Move every credit whose hold has passed from pending to available.

        Released credits become COMPLETED, so running this again never moves
        the same funds twice. Returns the amount released.
        """
        as_of = _aware(as_of) or datetime.now(UTC)
        matured = [t for t in self.transactions if t.matured(as_of)]
        if not matured:
            return 0.0

        released = money(sum(t.amount for t in matured))
        with atomic_change(self):
            for credit in matured:
                credit.status = TransactionStatus.COMPLETED.value
                credit.released_at = as_of
                self.add_transactions(
                    WalletTransaction(
                        type=TransactionType.RELEASE.value,
                        status=TransactionStatus.COMPLETED.value,
                        amount=credit.amount,
                        order_id=credit.order_id,
                        description=f"Hold released for order {credit.order_id}",
                        created_at=as_of,
                    )
                )
            # Clamp float dust left over from repeated rounding
            self.pending_balance = max(money(self.pending_balance - released), 0.0)
            self.available_balance = money(self.available_balance + released)
            self.balance = money(self.available_balance + self.pending_balance)
            self.updated_at = as_of

        self.raise_(
            FundsReleased(
                wallet_id=str(self.id),
                seller_id=str(self.seller_id),
                amount=released,
                credits_released=len(matured),
                released_at=as_of,
            )
        )
        return released

    # -------------------------------------------------------------------
    # Withdrawals
    # -------------------------------------------------------------------
    def hold_for_withdrawal(self, withdrawal_id, amount: float) -> WalletTransaction:
        """Reserve available funds for a withdrawal request."""
        amount = money(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Withdrawal amount must be greater than zero"]})
        if amount - self.available_balance > MONEY_TOLERANCE:
            raise InsufficientFundsError(
                {"amount": [f"Requested {amount:.2f} exceeds available balance {self.available_balance:.2f}"]}
            )

        now = datetime.now(UTC)
        entry = WalletTransaction(
            type=TransactionType.HOLD.value,
            status=TransactionStatus.PENDING.value,
            amount=amount,
            withdrawal_id=withdrawal_id,
            description=f"Funds held for withdrawal {withdrawal_id}",
            created_at=now,
        )
        with atomic_change(self):
            self.add_transactions(entry)
            self.available_balance = max(money(self.available_balance - amount), 0.0)
            self.balance = money(self.available_balance + self.pending_balance)
            self.updated_at = now

        self.raise_(
            FundsHeldForWithdrawal(
                wallet_id=str(self.id),
                seller_id=str(self.seller_id),
                withdrawal_id=str(withdrawal_id),
                amount=amount,
            )
        )
        return entry

    def _pending_hold(self, withdrawal_id) -> WalletTransaction:
        hold = self.hold_for(withdrawal_id)
        if hold is None or hold.status != TransactionStatus.PENDING.value:
            raise ValidationError({"withdrawal_id": [f"No pending hold for withdrawal {withdrawal_id}"]})
        return hold

    def settle_withdrawal(self, withdrawal_id) -> None:
        """The payout went out: the hold becomes a completed debit."""
        hold = self._pending_hold(withdrawal_id)
        now = datetime.now(UTC)
        hold.status = TransactionStatus.COMPLETED.value
        self.add_transactions(
            WalletTransaction(
                type=TransactionType.DEBIT.value,
                status=TransactionStatus.COMPLETED.value,
                amount=hold.amount,
                withdrawal_id=withdrawal_id,
                description=f"Withdrawal {withdrawal_id} paid out",
                created_at=now,
            )
        )
        self.updated_at = now
        self.raise_(
            WithdrawalFundsSettled(
                wallet_id=str(self.id),
                seller_id=str(self.seller_id),
                withdrawal_id=str(withdrawal_id),
                amount=hold.amount,
            )
        )

    def restore_withdrawal(self, withdrawal_id, status: TransactionStatus) -> float:
        """Give held funds back after a failed or cancelled withdrawal."""
        if status not in (TransactionStatus.FAILED, TransactionStatus.CANCELLED):
            raise ValidationError({"status": ["Held funds are restored only on failure or cancellation"]})

        hold = self._pending_hold(withdrawal_id)
        now = datetime.now(UTC)
        with atomic_change(self):
            hold.status = status.value
            self.available_balance = money(self.available_balance + hold.amount)
            self.balance = money(self.available_balance + self.pending_balance)
            self.updated_at = now

        self.raise_(
            WithdrawalFundsRestored(
                wallet_id=str(self.id),
                seller_id=str(self.seller_id),
                withdrawal_id=str(withdrawal_id),
                amount=hold.amount,
                status=status.value,
            )
        )
        return hold.amount


@marketplace.repository(part_of=Wallet)
class WalletRepository:
    def for_seller(self, seller_id) -> Wallet | None:
        return self._dao.query.filter(seller_id=str(seller_id)).all().first

    def all_wallets(self) -> list[Wallet]:
        return self._dao.query.all().items

    def page(self, page: int = 1, page_size: int = 20) -> dict:
        results = self._dao.query.order_by("seller_id").limit(page_size).offset((page - 1) * page_size).all()
        return {"items": results.items, "total": results.total, "page": page, "page_size": page_size}
