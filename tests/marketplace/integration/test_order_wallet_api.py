"""Integration tests for order transitions, wallets, withdrawals and commissions."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from marketplace.wallet.release import ReleaseHeldFunds


@pytest.fixture()
def order(client, headers, register_product, fill_cart):
    product_id, (variant_id,) = register_product(seller_id="S1", category_id="apparel", price=100.0)
    fill_cart("B", [(product_id, variant_id, 1)])
    response = client.post("/checkout", json={}, headers=headers("B"))
    return response.json()["orders"][0]


def _move(client, headers, order, *actions, actor=("S1", "seller")):
    response = None
    for action in actions:
        response = client.post(f"/orders/{order['order_id']}/{action}", headers=headers(*actor))
        assert response.status_code == 200, response.json()
    return response.json()


@pytest.fixture()
def earned(client, headers, order):
    """S1's order is completed and the hold window has passed."""
    _move(client, headers, order, "accept", "ship", "complete")
    current_domain.process(
        ReleaseHeldFunds(seller_id="S1", as_of=datetime.now(UTC) + timedelta(days=8)), asynchronous=False
    )


class TestOrderEndpoints:
    def test_parties_can_read_the_order(self, client, headers, order):
        for actor in (("B", "buyer"), ("S1", "seller"), ("root", "admin")):
            response = client.get(f"/orders/{order['order_id']}", headers=headers(*actor))
            assert response.status_code == 200

    def test_strangers_cannot_read_the_order(self, client, headers, order):
        response = client.get(f"/orders/{order['order_id']}", headers=headers("S2", "seller"))
        assert response.status_code == 404

    def test_unknown_order(self, client, headers):
        response = client.get("/orders/does-not-exist", headers=headers("root", "admin"))
        assert response.status_code == 404

    def test_full_fulfilment(self, client, headers, order):
        data = _move(client, headers, order, "accept", "ship", "deliver", "complete")
        assert data["status"] == "Completed"
        assert data["settled"] is True

    def test_ship_with_tracking(self, client, headers, order):
        _move(client, headers, order, "accept")
        response = client.post(
            f"/orders/{order['order_id']}/ship",
            json={"carrier": "Leopards", "tracking_number": "LP-5521"},
            headers=headers("S1", "seller"),
        )
        assert response.json()["shipment"]["carrier"] == "Leopards"

    def test_reject_with_reason(self, client, headers, order):
        response = client.post(
            f"/orders/{order['order_id']}/reject",
            json={"reason": "Discontinued"},
            headers=headers("S1", "seller"),
        )
        assert response.json()["status"] == "Rejected"

    def test_other_seller_gets_403(self, client, headers, order):
        response = client.post(f"/orders/{order['order_id']}/accept", headers=headers("S2", "seller"))
        assert response.status_code == 403
        assert response.json()["kind"] == "unauthorized_transition"

    def test_invalid_transition_gets_409(self, client, headers, order):
        response = client.post(f"/orders/{order['order_id']}/deliver", headers=headers("S1", "seller"))
        assert response.status_code == 409
        assert response.json()["kind"] == "invalid_transition"


class TestWalletEndpoints:
    def test_summary_after_completion(self, client, headers, order):
        _move(client, headers, order, "accept", "ship", "complete")

        response = client.get("/wallets/me", headers=headers("S1", "seller"))

        assert response.status_code == 200
        data = response.json()
        assert data["pending_balance"] == 100.0
        assert data["available_balance"] == 0.0
        assert data["balance"] == 100.0

    def test_summary_needs_seller_role(self, client, headers):
        response = client.get("/wallets/me", headers=headers("B"))
        assert response.status_code == 403

    def test_transactions(self, client, headers, earned):
        response = client.get("/wallets/me/transactions", headers=headers("S1", "seller"))
        data = response.json()
        assert data["total"] == 2
        assert {t["type"] for t in data["items"]} == {"CREDIT", "RELEASE"}

        credits = client.get("/wallets/me/transactions?type=CREDIT", headers=headers("S1", "seller")).json()
        assert credits["total"] == 1
        assert credits["items"][0]["gross_amount"] == 100.0


class TestWithdrawalEndpoints:
    def _request(self, client, headers, amount):
        return client.post(
            "/withdrawals",
            json={"amount": amount, "details": {"account_holder": "Seller One", "account_number": "0099"}},
            headers=headers("S1", "seller"),
        )

    def test_request_and_pay_out(self, client, headers, earned):
        response = self._request(client, headers, 60.0)
        assert response.status_code == 201
        withdrawal = response.json()
        assert withdrawal["status"] == "PENDING"
        assert client.get("/wallets/me", headers=headers("S1", "seller")).json()["available_balance"] == 40.0

        admin = headers("root", "admin")
        client.post(f"/withdrawals/{withdrawal['withdrawal_id']}/process", headers=admin)
        response = client.post(f"/withdrawals/{withdrawal['withdrawal_id']}/complete", headers=admin)
        assert response.json()["status"] == "COMPLETED"

        stats = client.get("/withdrawals/stats", headers=headers("S1", "seller")).json()
        assert stats["total_withdrawn"] == 60.0

    def test_overdraw_gets_422(self, client, headers, earned):
        response = self._request(client, headers, 500.0)
        assert response.status_code == 422
        assert response.json()["kind"] == "insufficient_funds"
        assert client.get("/withdrawals", headers=headers("S1", "seller")).json() == []

    def test_failed_payout_restores_funds(self, client, headers, earned):
        withdrawal = self._request(client, headers, 60.0).json()
        admin = headers("root", "admin")
        client.post(f"/withdrawals/{withdrawal['withdrawal_id']}/process", headers=admin)
        response = client.post(
            f"/withdrawals/{withdrawal['withdrawal_id']}/fail", json={"reason": "IBAN rejected"}, headers=admin
        )

        assert response.json()["failure_reason"] == "IBAN rejected"
        assert client.get("/wallets/me", headers=headers("S1", "seller")).json()["available_balance"] == 100.0

    def test_seller_cannot_process(self, client, headers, earned):
        withdrawal = self._request(client, headers, 10.0).json()
        response = client.post(
            f"/withdrawals/{withdrawal['withdrawal_id']}/process", headers=headers("S1", "seller")
        )
        assert response.status_code == 403

    def test_seller_cancels(self, client, headers, earned):
        withdrawal = self._request(client, headers, 10.0).json()
        response = client.post(
            f"/withdrawals/{withdrawal['withdrawal_id']}/cancel", headers=headers("S1", "seller")
        )
        assert response.json()["status"] == "CANCELLED"
        pending = client.get("/withdrawals?status=PENDING", headers=headers("S1", "seller")).json()
        assert pending == []


class TestCommissionEndpoints:
    def test_admin_sets_and_lists(self, client, headers):
        response = client.put("/commissions/apparel", json={"rate": 0.12}, headers=headers("root", "admin"))
        assert response.status_code == 200
        assert response.json()["rate"] == 0.12

        listed = client.get("/commissions").json()
        assert [c["category_id"] for c in listed] == ["apparel"]

    def test_seller_cannot_set(self, client, headers):
        response = client.put("/commissions/apparel", json={"rate": 0.0}, headers=headers("S1", "seller"))
        assert response.status_code == 403

    def test_rate_above_one_is_rejected(self, client, headers):
        response = client.put("/commissions/apparel", json={"rate": 2}, headers=headers("root", "admin"))
        assert response.status_code == 422

    def test_bulk_and_remove(self, client, headers):
        admin = headers("root", "admin")
        response = client.post(
            "/commissions/bulk",
            json={"entries": [{"category_id": "books", "rate": 0.05}, {"category_id": "toys", "rate": 0.1}]},
            headers=admin,
        )
        assert len(response.json()) == 2

        assert client.delete("/commissions/books", headers=admin).json() == {"status": "removed"}
        assert client.delete("/commissions/books", headers=admin).status_code == 404
        assert [c["category_id"] for c in client.get("/commissions").json()] == ["toys"]


class TestSellerOrderListing:
    def test_seller_sees_only_their_orders(self, client, headers, order, register_product, fill_cart):
        product_id, (variant_id,) = register_product(seller_id="S2", price=30.0, title="Mug")
        fill_cart("B", [(product_id, variant_id, 1)])
        client.post("/checkout", json={}, headers=headers("B"))

        listed = client.get("/orders", headers=headers("S1", "seller")).json()
        assert [o["order_id"] for o in listed] == [order["order_id"]]

    def test_status_filter(self, client, headers, order):
        _move(client, headers, order, "accept")
        seller = headers("S1", "seller")
        assert [o["status"] for o in client.get("/orders?status=Accepted", headers=seller).json()] == ["Accepted"]
        assert client.get("/orders?status=Pending", headers=seller).json() == []

    def test_admin_names_the_seller(self, client, headers, order):
        admin = headers("root", "admin")
        assert len(client.get("/orders?seller_id=S1", headers=admin).json()) == 1
        assert client.get("/orders", headers=admin).status_code == 400

    def test_buyer_gets_403(self, client, headers, order):
        assert client.get("/orders", headers=headers("B")).status_code == 403


class TestAdminPayoutDesk:
    def _request(self, client, headers, amount):
        return client.post("/withdrawals", json={"amount": amount}, headers=headers("S1", "seller")).json()

    def test_listing_filters_by_status(self, client, headers, earned):
        first = self._request(client, headers, 10.0)
        second = self._request(client, headers, 20.0)
        client.post(f"/withdrawals/{first['withdrawal_id']}/cancel", headers=headers("S1", "seller"))

        admin = headers("root", "admin")
        everything = client.get("/withdrawals/all", headers=admin).json()
        assert everything["total"] == 2
        assert everything["items"][0]["withdrawal_id"] == second["withdrawal_id"]

        pending = client.get("/withdrawals/all?status=PENDING", headers=admin).json()
        assert [w["withdrawal_id"] for w in pending["items"]] == [second["withdrawal_id"]]

        paged = client.get("/withdrawals/all?page=2&page_size=1", headers=admin).json()
        assert (paged["total"], paged["page"], len(paged["items"])) == (2, 2, 1)

    def test_listing_is_admin_only(self, client, headers, earned):
        assert client.get("/withdrawals/all", headers=headers("S1", "seller")).status_code == 403

    def test_details_for_owner_and_admin(self, client, headers, earned):
        withdrawal = self._request(client, headers, 25.0)
        path = f"/withdrawals/{withdrawal['withdrawal_id']}"

        assert client.get(path, headers=headers("S1", "seller")).json()["amount"] == 25.0
        assert client.get(path, headers=headers("root", "admin")).status_code == 200
        assert client.get(path, headers=headers("S2", "seller")).status_code == 404
        assert client.get("/withdrawals/missing", headers=headers("root", "admin")).status_code == 404

    def test_marketplace_stats(self, client, headers, earned):
        withdrawal = self._request(client, headers, 30.0)
        admin = headers("root", "admin")
        client.post(f"/withdrawals/{withdrawal['withdrawal_id']}/process", headers=admin)
        client.post(f"/withdrawals/{withdrawal['withdrawal_id']}/complete", headers=admin)
        self._request(client, headers, 5.0)

        stats = client.get("/withdrawals/stats/all", headers=admin).json()
        assert stats["sellers"] == 1
        assert stats["total_count"] == 2
        assert stats["total_withdrawn"] == 30.0
        assert stats["in_flight"] == 5.0
        assert client.get("/withdrawals/stats/all", headers=headers("S1", "seller")).status_code == 403

    def test_wallet_listing(self, client, headers, earned):
        client.get("/wallets/me", headers=headers("S2", "seller"))

        page = client.get("/wallets/all", headers=headers("root", "admin")).json()
        assert page["total"] == 2
        assert [w["seller_id"] for w in page["items"]] == ["S1", "S2"]
        assert page["items"][0]["available_balance"] == 100.0

        assert client.get("/wallets/all", headers=headers("S1", "seller")).status_code == 403
        assert client.get("/wallets/all?page_size=500", headers=headers("root", "admin")).status_code == 422
