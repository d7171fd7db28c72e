"""Marketplace API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import (
    cart_router,
    checkout_router,
    commission_router,
    order_router,
    payment_router,
    product_router,
    wallet_router,
    withdrawal_router,
)

__all__ = [
    "cart_router",
    "checkout_router",
    "commission_router",
    "order_router",
    "payment_router",
    "product_router",
    "register_error_handlers",
    "wallet_router",
    "withdrawal_router",
]
