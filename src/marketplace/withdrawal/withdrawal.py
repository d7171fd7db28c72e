"""Withdrawal aggregate (CQRS) — a seller's payout request.

The funds are already reserved on the wallet when the request is created, so
this aggregate only tracks the payout's own progress.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PENDING → CANCELLED (by the seller)
    PENDING, PROCESSING → FAILED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransitionError
from marketplace.withdrawal.events import (
    WithdrawalCancelled,
    WithdrawalCompleted,
    WithdrawalFailed,
    WithdrawalProcessingStarted,
    WithdrawalRequested,
)


class WithdrawalStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class WithdrawalMethod(Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_WALLET = "MOBILE_WALLET"


_VALID_TRANSITIONS = {
    WithdrawalStatus.PENDING: {WithdrawalStatus.PROCESSING, WithdrawalStatus.CANCELLED, WithdrawalStatus.FAILED},
    WithdrawalStatus.PROCESSING: {WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED},
    WithdrawalStatus.COMPLETED: set(),  # Terminal
    WithdrawalStatus.FAILED: set(),  # Terminal
    WithdrawalStatus.CANCELLED: set(),  # Terminal
}

PAYOUT_DETAIL_KEYS = ("account_holder", "account_number", "bank_name", "routing_number", "swift_code")


@marketplace.aggregate(limit=None)
class Withdrawal:
    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.01)
    currency = String(max_length=3, default="PKR")
    method = String(choices=WithdrawalMethod, default=WithdrawalMethod.BANK_TRANSFER.value)
    details = Text()  # JSON: account_holder, account_number, bank_name, routing_number, swift_code
    status = String(choices=WithdrawalStatus, default=WithdrawalStatus.PENDING.value)
    failure_reason = String(max_length=500)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    def _assert_can_transition(self, target_status: WithdrawalStatus) -> None:
        current = WithdrawalStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                {"status": [f"Cannot transition withdrawal from {current.value} to {target_status.value}"]}
            )

    @classmethod
    def request(cls, wallet_id, seller_id, amount, currency="PKR", method=None, details=None):
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Withdrawal amount must be greater than zero"]})

        unknown = set(details or {}) - set(PAYOUT_DETAIL_KEYS)
        if unknown:
            raise ValidationError({"details": [f"Unknown payout detail(s): {', '.join(sorted(unknown))}"]})

        now = datetime.now(UTC)
        method = method or WithdrawalMethod.BANK_TRANSFER.value
        withdrawal = cls(
            wallet_id=wallet_id,
            seller_id=seller_id,
            amount=round(amount, 2),
            currency=currency,
            method=method,
            details=json.dumps(details or {}),
            status=WithdrawalStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        withdrawal.raise_(
            WithdrawalRequested(
                withdrawal_id=str(withdrawal.id),
                wallet_id=str(wallet_id),
                seller_id=str(seller_id),
                amount=withdrawal.amount,
                method=method,
                requested_at=now,
            )
        )
        return withdrawal

    @property
    def payout_details(self) -> dict:
        return json.loads(self.details) if self.details else {}

    def start_processing(self):
        self._assert_can_transition(WithdrawalStatus.PROCESSING)
        now = datetime.now(UTC)
        self.status = WithdrawalStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(
            WithdrawalProcessingStarted(
                withdrawal_id=str(self.id),
                seller_id=str(self.seller_id),
                started_at=now,
            )
        )

    def complete(self):
        self._assert_can_transition(WithdrawalStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = WithdrawalStatus.COMPLETED.value
        self.processed_at = now
        self.updated_at = now
        self.raise_(
            WithdrawalCompleted(
                withdrawal_id=str(self.id),
                seller_id=str(self.seller_id),
                amount=self.amount,
                completed_at=now,
            )
        )

    def fail(self, reason):
        self._assert_can_transition(WithdrawalStatus.FAILED)
        now = datetime.now(UTC)
        self.status = WithdrawalStatus.FAILED.value
        self.failure_reason = reason
        self.processed_at = now
        self.updated_at = now
        self.raise_(
            WithdrawalFailed(
                withdrawal_id=str(self.id),
                seller_id=str(self.seller_id),
                amount=self.amount,
                reason=reason,
                failed_at=now,
            )
        )

    def cancel(self):
        self._assert_can_transition(WithdrawalStatus.CANCELLED)
        now = datetime.now(UTC)
        self.status = WithdrawalStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(
            WithdrawalCancelled(
                withdrawal_id=str(self.id),
                seller_id=str(self.seller_id),
                amount=self.amount,
                cancelled_at=now,
            )
        )


@marketplace.repository(part_of=Withdrawal)
class WithdrawalRepository:
    def for_seller(self, seller_id, status=None) -> list[Withdrawal]:
        filters = {"seller_id": str(seller_id)}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).order_by("-created_at").all().items

    def all_withdrawals(self, status=None) -> list[Withdrawal]:
        query = self._dao.query
        if status:
            query = query.filter(status=status)
        return query.order_by("-created_at").all().items

    def page(self, status=None, page: int = 1, page_size: int = 20) -> dict:
        """Newest-first page across every seller, for the payout desk."""
        query = self._dao.query
        if status:
            query = query.filter(status=status)
        results = query.order_by("-created_at").limit(page_size).offset((page - 1) * page_size).all()
        return {"items": results.items, "total": results.total, "page": page, "page_size": page_size}
