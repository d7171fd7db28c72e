"""Shared BDD fixtures and step definitions for the marketplace."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from marketplace.errors import InvalidTransitionError, UnauthorizedTransitionError
from marketplace.order.events import (
    OrderAccepted,
    OrderCancelled,
    OrderCompleted,
    OrderDelivered,
    OrderPlaced,
    OrderRejected,
    OrderShipped,
)
from marketplace.order.order import Order
from marketplace.wallet.events import FundsHeldForWithdrawal, FundsReleased, WalletCredited

_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderAccepted": OrderAccepted,
    "OrderRejected": OrderRejected,
    "OrderShipped": OrderShipped,
    "OrderDelivered": OrderDelivered,
    "OrderCompleted": OrderCompleted,
    "OrderCancelled": OrderCancelled,
}

_WALLET_EVENT_CLASSES = {
    "WalletCredited": WalletCredited,
    "FundsReleased": FundsReleased,
    "FundsHeldForWithdrawal": FundsHeldForWithdrawal,
}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the exception an action raised, if any."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run an action, keeping a domain rejection in ``error`` instead of raising it."""

    def _attempt(action, *args, **kwargs):
        try:
            action(*args, **kwargs)
        except (ValidationError, UnauthorizedTransitionError) as exc:
            error["exc"] = exc

    return _attempt


# ---------------------------------------------------------------------------
# Given steps — Order
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a pending order for seller "{seller_id}"'), target_fixture="order")
def pending_order(seller_id):
    order = Order.place(
        order_number="ORD-20260101-ABC123",
        checkout_id="chk-001",
        buyer_id="B",
        seller_id=seller_id,
        lines=[
            {"product_id": "prod-001", "variant_id": "var-001", "category_id": "apparel", "quantity": 2, "unit_price": 50.0}
        ],
        payment_method="CASH_ON_DELIVERY",
        shipment=Order.cash_on_delivery_shipment("ORD-20260101-ABC123"),
    )
    order._events.clear()
    return order


@given("the order was accepted", target_fixture="order")
def accepted_order(order):
    order.accept(order.seller_id)
    order._events.clear()
    return order


@given("the order was shipped", target_fixture="order")
def shipped_order(order):
    order.ship()
    order._events.clear()
    return order


@given("the order was rejected", target_fixture="order")
def rejected_order(order):
    order.reject(order.seller_id, reason="Out of stock")
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps — Order
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the order action is not authorized")
def order_action_unauthorized(error):
    assert isinstance(error["exc"], UnauthorizedTransitionError)


@then("the order action fails with an invalid transition")
def order_action_invalid(error):
    assert isinstance(error["exc"], InvalidTransitionError), f"Got {error['exc']!r}"


@then(parsers.cfparse("an {event_type} order event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


# ---------------------------------------------------------------------------
# Then steps — Wallet
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the pending balance is {amount:f}"))
def pending_balance_is(wallet, amount):
    assert wallet.pending_balance == pytest.approx(amount)


@then(parsers.cfparse("the available balance is {amount:f}"))
def available_balance_is(wallet, amount):
    assert wallet.available_balance == pytest.approx(amount)


@then(parsers.cfparse("the balance is {amount:f}"))
def balance_is(wallet, amount):
    assert wallet.balance == pytest.approx(amount)


@then(parsers.cfparse("a {event_type} wallet event is raised"))
def wallet_event_raised(wallet, event_type):
    event_cls = _WALLET_EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in wallet._events)
