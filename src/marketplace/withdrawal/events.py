"""Domain events for the Withdrawal aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Withdrawal")
class WithdrawalRequested:
    __version__ = 1

    withdrawal_id: Identifier(required=True)
    wallet_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    amount: Float(required=True)
    method: String(required=True)
    requested_at: DateTime(required=True)


@marketplace.event(part_of="Withdrawal")
class WithdrawalProcessingStarted:
    __version__ = 1

    withdrawal_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    started_at: DateTime(required=True)


@marketplace.event(part_of="Withdrawal")
class WithdrawalCompleted:
    __version__ = 1

    withdrawal_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    amount: Float(required=True)
    completed_at: DateTime(required=True)


@marketplace.event(part_of="Withdrawal")
class WithdrawalFailed:
    __version__ = 1

    withdrawal_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    amount: Float(required=True)
    reason: String()
    failed_at: DateTime(required=True)


@marketplace.event(part_of="Withdrawal")
class WithdrawalCancelled:
    __version__ = 1

    withdrawal_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    amount: Float(required=True)
    cancelled_at: DateTime(required=True)
