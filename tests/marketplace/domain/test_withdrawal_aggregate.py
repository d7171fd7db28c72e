"""Tests for the Withdrawal aggregate and its state machine."""

import pytest
from protean.exceptions import ValidationError

from marketplace.errors import InvalidTransitionError
from marketplace.withdrawal.events import WithdrawalCompleted, WithdrawalFailed, WithdrawalRequested
from marketplace.withdrawal.withdrawal import Withdrawal, WithdrawalMethod, WithdrawalStatus


def _request(amount=500.0, **kwargs):
    withdrawal = Withdrawal.request(wallet_id="wal-1", seller_id="seller-1", amount=amount, **kwargs)
    return withdrawal


class TestWithdrawalRequest:
    def test_request_is_pending(self):
        withdrawal = _request()
        assert withdrawal.status == WithdrawalStatus.PENDING.value
        assert withdrawal.method == WithdrawalMethod.BANK_TRANSFER.value
        assert isinstance(withdrawal._events[-1], WithdrawalRequested)

    def test_amount_is_rounded_to_cents(self):
        assert _request(amount=100.456).amount == 100.46

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_non_positive_amount_is_refused(self, amount):
        with pytest.raises(ValidationError) as exc:
            _request(amount=amount)
        assert "amount" in exc.value.messages

    def test_payout_details_round_trip(self):
        details = {"account_holder": "Bilal Ahmed", "account_number": "PK36SCBL0000001123456702", "bank_name": "SCB"}
        withdrawal = _request(details=details)
        assert withdrawal.payout_details == details

    def test_unknown_payout_detail_is_refused(self):
        with pytest.raises(ValidationError) as exc:
            _request(details={"iban_checksum": "12"})
        assert "details" in exc.value.messages

    def test_mobile_wallet_method(self):
        withdrawal = _request(method=WithdrawalMethod.MOBILE_WALLET.value)
        assert withdrawal.method == "MOBILE_WALLET"


class TestWithdrawalTransitions:
    def test_pending_to_processing_to_completed(self):
        withdrawal = _request()
        withdrawal.start_processing()
        withdrawal.complete()
        assert withdrawal.status == WithdrawalStatus.COMPLETED.value
        assert withdrawal.processed_at is not None
        assert isinstance(withdrawal._events[-1], WithdrawalCompleted)

    def test_pending_cannot_complete_without_processing(self):
        withdrawal = _request()
        with pytest.raises(InvalidTransitionError):
            withdrawal.complete()
        assert withdrawal.status == WithdrawalStatus.PENDING.value

    def test_failure_records_reason(self):
        withdrawal = _request()
        withdrawal.start_processing()
        withdrawal.fail("Account closed")
        assert withdrawal.status == WithdrawalStatus.FAILED.value
        assert withdrawal.failure_reason == "Account closed"
        assert isinstance(withdrawal._events[-1], WithdrawalFailed)

    def test_pending_can_be_cancelled(self):
        withdrawal = _request()
        withdrawal.cancel()
        assert withdrawal.status == WithdrawalStatus.CANCELLED.value

    def test_processing_cannot_be_cancelled(self):
        withdrawal = _request()
        withdrawal.start_processing()
        with pytest.raises(InvalidTransitionError):
            withdrawal.cancel()

    @pytest.mark.parametrize("action", ["start_processing", "complete", "cancel"])
    def test_completed_is_terminal(self, action):
        withdrawal = _request()
        withdrawal.start_processing()
        withdrawal.complete()
        with pytest.raises(InvalidTransitionError):
            getattr(withdrawal, action)()

    def test_failed_is_terminal(self):
        withdrawal = _request()
        withdrawal.fail("Rejected by bank")
        with pytest.raises(InvalidTransitionError):
            withdrawal.complete()
