"""Shared fixtures for the marketplace tests."""

import json

import pytest
from protean import current_domain

from marketplace.cart.management import AddCartItem, CreateCart
from marketplace.catalogue.registration import RegisterProduct
from marketplace.notification.sink import NotificationSink, reset_sink, set_sink
from marketplace.payment.gateway import set_http_client
from marketplace.payment.gateway.external import SIGNATURE_FIELD, secure_hash

MERCHANT_ID = "MC10042"
MERCHANT_PASSWORD = "pa55word"
MERCHANT_SECRET = "integrity-salt"


class RecordingSink(NotificationSink):
    def __init__(self):
        self.notices = []

    def send(self, notice):
        self.notices.append(notice)

    def kinds(self):
        return [n.kind for n in self.notices]


@pytest.fixture(autouse=True)
def notifications():
    sink = RecordingSink()
    set_sink(sink)
    yield sink
    reset_sink()


@pytest.fixture(autouse=True)
def _reset_http_client():
    yield
    set_http_client(None)


@pytest.fixture()
def external_env(monkeypatch):
    """Credentials for the external provider, bypass mode off."""
    monkeypatch.delenv("PAYMENT_BYPASS", raising=False)
    monkeypatch.setenv("JAZZCASH_MERCHANT_ID", MERCHANT_ID)
    monkeypatch.setenv("JAZZCASH_PASSWORD", MERCHANT_PASSWORD)
    monkeypatch.setenv("JAZZCASH_SECRET", MERCHANT_SECRET)
    monkeypatch.setenv("JAZZCASH_RETURN_URL", "https://shop.example.pk/payments/return")


@pytest.fixture()
def bypass_env(monkeypatch):
    monkeypatch.setenv("PAYMENT_BYPASS", "true")


@pytest.fixture()
def sign():
    def _sign(fields):
        signed = dict(fields)
        signed[SIGNATURE_FIELD] = secure_hash(fields, MERCHANT_SECRET)
        return signed

    return _sign


@pytest.fixture()
def address():
    return {
        "recipient": "Ayesha Khan",
        "line1": "House 12, Street 4, Gulberg III",
        "city": "Lahore",
        "state": "Punjab",
        "postal_code": "54660",
        "country": "PK",
        "phone": "+923001234567",
    }


@pytest.fixture()
def register_product():
    """Register a product and return ``(product_id, [variant_ids])``."""

    def _register(seller_id="seller-1", category_id=None, price=100.0, stock=10, title="Widget", variants=None):
        variants = variants or [{"sku": f"{title[:3].upper()}-1", "price": price, "stock": stock}]
        result = current_domain.process(
            RegisterProduct(
                title=title,
                seller_id=seller_id,
                category_id=category_id,
                variants=json.dumps(variants),
            ),
            asynchronous=False,
        )
        return result["product_id"], result["variant_ids"]

    return _register


@pytest.fixture()
def fill_cart():
    """Create (or reuse) the buyer's cart and add ``(product_id, variant_id, qty)`` lines."""

    def _fill(buyer_id, lines):
        cart_id = current_domain.process(CreateCart(buyer_id=buyer_id), asynchronous=False)
        for product_id, variant_id, quantity in lines:
            current_domain.process(
                AddCartItem(cart_id=cart_id, product_id=product_id, variant_id=variant_id, quantity=quantity),
                asynchronous=False,
            )
        return cart_id

    return _fill


@pytest.fixture()
def two_seller_cart(register_product, fill_cart):
    """Buyer B with 2 x 100.00 from seller S1 (apparel) and 1 x 50.00 from seller S2."""
    p1, (v1,) = register_product(seller_id="S1", category_id="apparel", price=100.0, stock=5, title="Kurta")
    p2, (v2,) = register_product(seller_id="S2", category_id="books", price=50.0, stock=3, title="Novel")
    cart_id = fill_cart("B", [(p1, v1, 2), (p2, v2, 1)])
    return {"cart_id": cart_id, "p1": p1, "v1": v1, "p2": p2, "v2": v2}
