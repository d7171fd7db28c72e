"""Domain events for the Wallet aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Wallet")
class WalletOpened:
    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    currency = String(required=True)
    opened_at = DateTime(required=True)


@marketplace.event(part_of="Wallet")
class WalletCredited:
    """Net proceeds of an order were credited and are on hold."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gross_amount = Float(required=True)
    commission_amount = Float(required=True)
    net_amount = Float(required=True)
    hold_until = DateTime(required=True)


@marketplace.event(part_of="Wallet")
class FundsReleased:
    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    credits_released = Integer(required=True)
    released_at = DateTime(required=True)


@marketplace.event(part_of="Wallet")
class FundsHeldForWithdrawal:
    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    withdrawal_id = Identifier(required=True)
    amount = Float(required=True)


@marketplace.event(part_of="Wallet")
class WithdrawalFundsSettled:
    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    withdrawal_id = Identifier(required=True)
    amount = Float(required=True)


@marketplace.event(part_of="Wallet")
class WithdrawalFundsRestored:
    __version__ = 1

    wallet_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    withdrawal_id = Identifier(required=True)
    amount = Float(required=True)
    status = String(required=True)
