"""Read-side helpers for withdrawals, per seller and across the marketplace."""

from protean.utils.globals import current_domain

from marketplace.errors import NotFoundError
from marketplace.withdrawal.withdrawal import Withdrawal, WithdrawalStatus


def withdrawal_history(seller_id, status=None) -> list[Withdrawal]:
    return current_domain.repository_for(Withdrawal).for_seller(seller_id, status=status)


def withdrawal_details(withdrawal_id, actor_id, is_admin: bool) -> Withdrawal:
    """A withdrawal as seen by its seller or an admin; anyone else gets NotFound."""
    withdrawal = current_domain.repository_for(Withdrawal).get(withdrawal_id)
    if not is_admin and str(withdrawal.seller_id) != str(actor_id):
        raise NotFoundError(f"Withdrawal {withdrawal_id} not found", withdrawal_id=str(withdrawal_id))
    return withdrawal


def _tally(withdrawals) -> dict:
    per_status = {status.value: {"count": 0, "amount": 0.0} for status in WithdrawalStatus}
    for withdrawal in withdrawals:
        bucket = per_status[withdrawal.status]
        bucket["count"] += 1
        bucket["amount"] = round(bucket["amount"] + withdrawal.amount, 2)

    return {
        "by_status": per_status,
        "total_count": sum(b["count"] for b in per_status.values()),
        "total_withdrawn": per_status[WithdrawalStatus.COMPLETED.value]["amount"],
        "in_flight": round(
            per_status[WithdrawalStatus.PENDING.value]["amount"] + per_status[WithdrawalStatus.PROCESSING.value]["amount"],
            2,
        ),
    }


def withdrawal_stats(seller_id) -> dict:
    """Count and total per status, plus overall figures."""
    return {"seller_id": str(seller_id), **_tally(withdrawal_history(seller_id))}


def marketplace_withdrawal_stats() -> dict:
    withdrawals = current_domain.repository_for(Withdrawal).all_withdrawals()
    return {"sellers": len({str(w.seller_id) for w in withdrawals}), **_tally(withdrawals)}
