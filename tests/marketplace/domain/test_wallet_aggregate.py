"""Tests for the Wallet aggregate — credits, holds, releases and withdrawals."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.errors import InsufficientFundsError
from marketplace.wallet.events import FundsReleased, WalletCredited
from marketplace.wallet.wallet import TransactionStatus, TransactionType, Wallet

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _assert_reconciles(wallet):
    assert wallet.balance == pytest.approx(wallet.available_balance + wallet.pending_balance, abs=0.005)


def _wallet_with_available(amount):
    wallet = Wallet.open(seller_id="seller-1")
    wallet.credit_order("ord-1", gross_amount=amount, commission_amount=0.0, hold_days=7, now=NOW)
    wallet.release_matured(NOW + timedelta(days=7))
    wallet._events.clear()
    return wallet


class TestWalletCredit:
    def test_new_wallet_is_empty(self):
        wallet = Wallet.open(seller_id="seller-1")
        assert (wallet.balance, wallet.available_balance, wallet.pending_balance) == (0.0, 0.0, 0.0)

    def test_credit_is_net_of_commission_and_pending(self):
        wallet = Wallet.open(seller_id="seller-1")
        entry = wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=50.0, hold_days=7, now=NOW)

        assert entry.type == TransactionType.CREDIT.value
        assert entry.status == TransactionStatus.PENDING.value
        assert entry.amount == 50.0
        assert entry.commission_rate == 0.5
        assert entry.hold_until == NOW + timedelta(days=7)
        assert wallet.pending_balance == 50.0
        assert wallet.available_balance == 0.0
        _assert_reconciles(wallet)

    def test_credit_raises_event(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet._events.clear()
        wallet.credit_order("ord-1", gross_amount=80.0, commission_amount=8.0, hold_days=7, now=NOW)
        event = wallet._events[-1]
        assert isinstance(event, WalletCredited)
        assert event.net_amount == 72.0

    def test_same_order_is_credited_once(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW)
        assert wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW) is None
        assert wallet.pending_balance == 100.0
        assert len(wallet.transactions) == 1

    def test_commission_above_amount_is_refused(self):
        wallet = Wallet.open(seller_id="seller-1")
        with pytest.raises(ValidationError):
            wallet.credit_order("ord-1", gross_amount=10.0, commission_amount=12.0, hold_days=7, now=NOW)

    def test_balances_must_reconcile(self):
        wallet = Wallet.open(seller_id="seller-1")
        with pytest.raises(ValidationError) as exc:
            wallet.balance = 10.0
        assert "balance" in exc.value.messages


class TestWalletRelease:
    def test_nothing_matures_inside_hold_window(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW)
        assert wallet.release_matured(NOW + timedelta(days=6)) == 0.0
        assert wallet.pending_balance == 100.0

    def test_matured_credit_moves_to_available(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=10.0, hold_days=7, now=NOW)
        wallet._events.clear()

        released = wallet.release_matured(NOW + timedelta(days=7))

        assert released == 90.0
        assert wallet.available_balance == 90.0
        assert wallet.pending_balance == 0.0
        assert wallet.credit_for("ord-1").status == TransactionStatus.COMPLETED.value
        assert any(t.type == TransactionType.RELEASE.value for t in wallet.transactions)
        assert isinstance(wallet._events[-1], FundsReleased)
        _assert_reconciles(wallet)

    def test_release_is_idempotent(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW)
        wallet.release_matured(NOW + timedelta(days=8))
        assert wallet.release_matured(NOW + timedelta(days=9)) == 0.0
        assert wallet.available_balance == 100.0

    def test_only_matured_credits_are_released(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW)
        wallet.credit_order("ord-2", gross_amount=40.0, commission_amount=0.0, hold_days=7, now=NOW + timedelta(days=3))

        assert wallet.release_matured(NOW + timedelta(days=8)) == 100.0
        assert wallet.pending_balance == 40.0
        assert wallet.has_matured_credits(NOW + timedelta(days=10)) is True
        _assert_reconciles(wallet)


class TestWalletWithdrawals:
    def test_hold_reduces_available_immediately(self):
        wallet = _wallet_with_available(100.0)
        wallet.hold_for_withdrawal("wd-1", 60.0)
        assert wallet.available_balance == 40.0
        assert wallet.hold_for("wd-1").status == TransactionStatus.PENDING.value
        _assert_reconciles(wallet)

    def test_hold_above_available_is_refused(self):
        wallet = _wallet_with_available(100.0)
        with pytest.raises(InsufficientFundsError):
            wallet.hold_for_withdrawal("wd-1", 100.01)
        assert wallet.available_balance == 100.0
        assert wallet.hold_for("wd-1") is None

    def test_pending_funds_cannot_be_withdrawn(self):
        wallet = Wallet.open(seller_id="seller-1")
        wallet.credit_order("ord-1", gross_amount=100.0, commission_amount=0.0, hold_days=7, now=NOW)
        with pytest.raises(InsufficientFundsError):
            wallet.hold_for_withdrawal("wd-1", 10.0)

    def test_exact_available_amount_can_be_held(self):
        wallet = _wallet_with_available(100.0)
        wallet.hold_for_withdrawal("wd-1", 100.0)
        assert wallet.available_balance == 0.0

    def test_settled_withdrawal_becomes_debit(self):
        wallet = _wallet_with_available(100.0)
        wallet.hold_for_withdrawal("wd-1", 60.0)
        wallet.settle_withdrawal("wd-1")

        assert wallet.hold_for("wd-1").status == TransactionStatus.COMPLETED.value
        debits = [t for t in wallet.transactions if t.type == TransactionType.DEBIT.value]
        assert len(debits) == 1 and debits[0].amount == 60.0
        assert wallet.available_balance == 40.0
        _assert_reconciles(wallet)

    @pytest.mark.parametrize("status", [TransactionStatus.FAILED, TransactionStatus.CANCELLED])
    def test_restored_withdrawal_returns_funds(self, status):
        wallet = _wallet_with_available(100.0)
        wallet.hold_for_withdrawal("wd-1", 60.0)
        wallet.restore_withdrawal("wd-1", status)

        assert wallet.available_balance == 100.0
        assert wallet.hold_for("wd-1").status == status.value
        _assert_reconciles(wallet)

    def test_hold_cannot_be_settled_twice(self):
        wallet = _wallet_with_available(100.0)
        wallet.hold_for_withdrawal("wd-1", 60.0)
        wallet.settle_withdrawal("wd-1")
        with pytest.raises(ValidationError):
            wallet.restore_withdrawal("wd-1", TransactionStatus.FAILED)
