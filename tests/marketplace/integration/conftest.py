"""Fixtures for the Marketplace API integration tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.api import (
    cart_router,
    checkout_router,
    commission_router,
    order_router,
    payment_router,
    product_router,
    register_error_handlers,
    wallet_router,
    withdrawal_router,
)


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (
        product_router,
        cart_router,
        checkout_router,
        payment_router,
        order_router,
        wallet_router,
        withdrawal_router,
        commission_router,
    ):
        app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)


def as_user(user_id, role="buyer"):
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture()
def headers():
    return as_user
