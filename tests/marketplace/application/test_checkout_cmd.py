"""Application tests for PlaceCheckout with immediate payment methods.

Cash on delivery and bypass mode create the seller orders in the same unit of
work as the checkout request.
"""

import json
import re

import pytest
from protean import current_domain

from marketplace.cart.cart import CartStatus, ShoppingCart
from marketplace.catalogue.product import PLATFORM_SELLER_ID, Product
from marketplace.checkout.placement import PlaceCheckout
from marketplace.errors import EmptyCartError, InsufficientStockError, NotFoundError
from marketplace.order.order import COD_CARRIER, Order, OrderStatus
from marketplace.payment.payment import Payment, PaymentStatus


def _checkout(buyer_id="B", method="CASH_ON_DELIVERY", cart_id=None, address=None):
    return current_domain.process(
        PlaceCheckout(
            buyer_id=buyer_id,
            payment_method=method,
            cart_id=cart_id,
            address=json.dumps(address) if address else None,
        ),
        asynchronous=False,
    )


def _stock(product_id, variant_id):
    return current_domain.repository_for(Product).get(product_id).variant(variant_id).stock


class TestCashOnDeliveryCheckout:
    def test_one_order_and_payment_per_seller(self, two_seller_cart, address):
        result = _checkout(address=address)

        assert len(result.orders) == 2
        assert {o.seller_id for o in result.orders} == {"S1", "S2"}
        assert [p.status for p in result.payments] == [PaymentStatus.PENDING.value] * 2
        assert result.deferred is False

    def test_orders_are_persisted_pending(self, two_seller_cart, address):
        result = _checkout(address=address)
        orders = current_domain.repository_for(Order).for_checkout(result.checkout_id)
        assert len(orders) == 2
        assert all(o.status == OrderStatus.PENDING.value for o in orders)

    def test_order_amounts_add_up_to_cart_subtotal(self, two_seller_cart):
        cart = current_domain.repository_for(ShoppingCart).get(two_seller_cart["cart_id"])
        subtotal = cart.subtotal

        result = _checkout()

        assert sum(o.amount for o in result.orders) == pytest.approx(subtotal)
        assert sorted(o.amount for o in result.orders) == [50.0, 200.0]

    def test_payments_are_linked_to_orders(self, two_seller_cart):
        result = _checkout()
        repo = current_domain.repository_for(Payment)
        for order in result.orders:
            payment = repo.for_order(order.id)
            assert payment.amount == order.amount
            assert payment.method == "CASH_ON_DELIVERY"
            assert payment.txn_ref_no == result.txn_ref_no

    def test_stock_is_decremented(self, two_seller_cart):
        c = two_seller_cart
        _checkout()
        assert _stock(c["p1"], c["v1"]) == 3
        assert _stock(c["p2"], c["v2"]) == 2
        assert current_domain.repository_for(Product).get(c["p1"]).sales_count == 2

    def test_cart_is_converted_and_emptied(self, two_seller_cart):
        _checkout()
        cart = current_domain.repository_for(ShoppingCart).get(two_seller_cart["cart_id"])
        assert cart.status == CartStatus.CONVERTED.value
        assert len(cart.items) == 0

    def test_address_is_recorded_on_first_order_only(self, two_seller_cart, address):
        result = _checkout(address=address)
        first, second = result.orders
        assert first.shipping_address.city == "Lahore"
        assert second.shipping_address is None

    def test_orders_carry_cash_on_delivery_shipment(self, two_seller_cart):
        result = _checkout()
        for order in result.orders:
            assert order.shipment.carrier == COD_CARRIER
            assert order.shipment.tracking_number == f"COD-{order.order_number}"

    def test_order_numbers_are_unique(self, register_product, fill_cart):
        product_id, (variant_id,) = register_product(stock=100)
        numbers = set()
        for index in range(10):
            fill_cart(f"buyer-{index}", [(product_id, variant_id, 1)])
            result = _checkout(buyer_id=f"buyer-{index}")
            numbers.update(o.order_number for o in result.orders)

        assert len(numbers) == 10
        assert all(re.fullmatch(r"ORD-\d{8}-[0-9A-Z]{6}", n) for n in numbers)

    def test_platform_products_are_attributed_to_platform_seller(self, register_product, fill_cart):
        product_id, (variant_id,) = register_product(seller_id=None)
        fill_cart("B", [(product_id, variant_id, 1)])

        result = _checkout()

        assert result.orders[0].seller_id == PLATFORM_SELLER_ID

    def test_item_prices_are_the_cart_snapshot(self, register_product, fill_cart):
        product_id, (variant_id,) = register_product(price=100.0)
        fill_cart("B", [(product_id, variant_id, 1)])

        # Catalogue price changes after the item went into the cart
        repo = current_domain.repository_for(Product)
        product = repo.get(product_id)
        product.variant(variant_id).price = 120.0
        repo.add(product)

        result = _checkout()
        assert result.orders[0].items[0].unit_price == 100.0


class TestCheckoutRejections:
    def test_oversell_is_rejected_without_mutation(self, register_product, fill_cart):
        product_id, (variant_id,) = register_product(stock=2)
        cart_id = fill_cart("B", [(product_id, variant_id, 3)])

        with pytest.raises(InsufficientStockError):
            _checkout()

        assert current_domain.repository_for(Order)._dao.query.all().total == 0
        assert current_domain.repository_for(Payment)._dao.query.all().total == 0
        assert _stock(product_id, variant_id) == 2
        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.ACTIVE.value

    def test_one_short_seller_rejects_whole_cart(self, two_seller_cart, register_product, fill_cart):
        scarce, (scarce_variant,) = register_product(seller_id="S3", stock=0, title="Rare")
        fill_cart("B", [(scarce, scarce_variant, 1)])

        with pytest.raises(InsufficientStockError):
            _checkout()

        c = two_seller_cart
        assert _stock(c["p1"], c["v1"]) == 5
        assert current_domain.repository_for(Order)._dao.query.all().total == 0

    def test_buyer_without_cart(self):
        with pytest.raises(EmptyCartError):
            _checkout(buyer_id="nobody")

    def test_empty_cart(self, fill_cart):
        fill_cart("B", [])
        with pytest.raises(EmptyCartError):
            _checkout()

    def test_someone_elses_cart(self, two_seller_cart):
        with pytest.raises(NotFoundError):
            _checkout(buyer_id="intruder", cart_id=two_seller_cart["cart_id"])


class TestBypassCheckout:
    def test_external_payment_completes_immediately(self, bypass_env, two_seller_cart):
        result = _checkout(method="EXTERNAL")

        assert result.deferred is False
        assert len(result.orders) == 2
        assert all(p.status == PaymentStatus.COMPLETED.value for p in result.payments)
        assert all(o.shipment is None for o in result.orders)
        payment = result.payments[0]
        assert payment.transactions[0].response_message == "Payment Successful (BYPASS MODE)"
