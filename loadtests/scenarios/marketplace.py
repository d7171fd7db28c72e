"""Marketplace load test scenarios.

Buyers check out carts from a seller they create on the fly (Locust users do
not share state) and then play the seller's side of fulfilment. Sellers list
products and poll their wallet and withdrawal history.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    buyer_headers,
    product_data,
    seller_headers,
    shipment_data,
    shipping_address,
    unique_user_id,
    withdrawal_data,
)
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import BuyerState, SellerState


class CashOnDeliveryJourney(SequentialTaskSet):
    """List Product -> Fill Cart -> Checkout (COD) -> Accept -> Ship -> Complete -> Wallet.

    Generates events: OrderPlaced, OrderAccepted, OrderShipped, OrderCompleted,
    WalletOpened, WalletCredited.
    """

    def on_start(self):
        self.seller = SellerState(seller_id=unique_user_id("seller"))
        self.state = BuyerState(buyer_id=unique_user_id("buyer"))

    @task
    def list_product(self):
        with self.client.post(
            "/products",
            json=product_data(),
            headers=seller_headers(self.seller.seller_id),
            catch_response=True,
            name="POST /products",
        ) as resp:
            if resp.status_code == 201:
                data = resp.json()
                self.seller.products.append((data["product_id"], data["variant_ids"][0]))
            else:
                resp.failure(f"Register product failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def fill_cart(self):
        headers = buyer_headers(self.state.buyer_id)
        with self.client.post("/carts", headers=headers, catch_response=True, name="POST /carts") as resp:
            if resp.status_code != 201:
                resp.failure(f"Create cart failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()
            self.state.cart_id = resp.json()["cart_id"]

        product_id, variant_id = self.seller.products[-1]
        with self.client.post(
            f"/carts/{self.state.cart_id}/items",
            json={"product_id": product_id, "variant_id": variant_id, "quantity": random.randint(1, 3)},
            headers=headers,
            catch_response=True,
            name="POST /carts/{id}/items",
        ) as resp:
            if resp.status_code != 201:
                resp.failure(f"Add item failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def checkout(self):
        with self.client.post(
            "/checkout",
            json={"payment_method": "CASH_ON_DELIVERY", "address": shipping_address()},
            headers=buyer_headers(self.state.buyer_id),
            catch_response=True,
            name="POST /checkout (COD)",
        ) as resp:
            if resp.status_code == 201:
                for order in resp.json()["orders"]:
                    self.state.order_ids.append(order["order_id"])
                    self.state.seller_ids[order["order_id"]] = order["seller_id"]
            else:
                resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    def _transition(self, action, json=None):
        for order_id in self.state.order_ids:
            with self.client.post(
                f"/orders/{order_id}/{action}",
                json=json,
                headers=seller_headers(self.state.seller_ids[order_id]),
                catch_response=True,
                name=f"POST /orders/{{id}}/{action}",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"{action} failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def accept(self):
        self._transition("accept")

    @task
    def ship(self):
        self._transition("ship", json=shipment_data())

    @task
    def complete(self):
        self._transition("complete")

    @task
    def check_wallet(self):
        with self.client.get(
            "/wallets/me",
            headers=seller_headers(self.seller.seller_id),
            catch_response=True,
            name="GET /wallets/me",
        ) as resp:
            if resp.status_code == 200 and resp.json()["pending_balance"] <= 0:
                resp.failure("Completed order was not credited")

    @task
    def done(self):
        self.interrupt()


class SellerHousekeepingJourney(SequentialTaskSet):
    """List Products -> Restock -> Wallet -> Withdrawal attempt -> Stats.

    A fresh seller has nothing available, so the withdrawal request is
    expected to be refused with insufficient_funds.
    """

    def on_start(self):
        self.state = SellerState(seller_id=unique_user_id("seller"))

    @property
    def headers(self):
        return seller_headers(self.state.seller_id)

    @task
    def list_products(self):
        for _ in range(random.randint(1, 3)):
            resp = self.client.post("/products", json=product_data(num_variants=2), headers=self.headers, name="POST /products")
            if resp.status_code == 201:
                data = resp.json()
                self.state.products.append((data["product_id"], data["variant_ids"][0]))

    @task
    def restock(self):
        for product_id, variant_id in self.state.products:
            self.client.post(
                f"/products/{product_id}/variants/{variant_id}/restock",
                json={"quantity": random.randint(5, 50)},
                name="POST /products/{id}/variants/{id}/restock",
            )

    @task
    def read_wallet(self):
        self.client.get("/wallets/me", headers=self.headers, name="GET /wallets/me")
        self.client.get("/wallets/me/transactions", headers=self.headers, name="GET /wallets/me/transactions")

    @task
    def attempt_withdrawal(self):
        with self.client.post(
            "/withdrawals",
            json=withdrawal_data(round(random.uniform(100.0, 1000.0), 2)),
            headers=self.headers,
            catch_response=True,
            name="POST /withdrawals (no funds)",
        ) as resp:
            if resp.status_code == 422 and resp.json().get("kind") == "insufficient_funds":
                resp.success()
            else:
                resp.failure(f"Expected insufficient_funds, got {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def stats(self):
        self.client.get("/withdrawals/stats", headers=self.headers, name="GET /withdrawals/stats")

    @task
    def done(self):
        self.interrupt()


class BuyerUser(HttpUser):
    tasks = [CashOnDeliveryJourney]
    wait_time = between(1, 3)
    weight = 3


class SellerUser(HttpUser):
    tasks = [SellerHousekeepingJourney]
    wait_time = between(2, 5)
    weight = 1
