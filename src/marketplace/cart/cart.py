"""Shopping Cart aggregate (CQRS) — the buyer's basket before checkout.

Filling the cart belongs to the storefront. The settlement side only reads the
lines and, on a successful checkout, clears them and marks the cart converted.
Each line keeps the unit price seen when it was added so the buyer pays what
they were shown.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from marketplace.cart.events import (
    CartAbandoned,
    CartConverted,
    CartItemAdded,
    CartItemRemoved,
)
from marketplace.domain import marketplace


class CartStatus(Enum):
    ACTIVE = "Active"
    CONVERTED = "Converted"
    ABANDONED = "Abandoned"


@marketplace.entity(part_of="ShoppingCart", limit=None)
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    added_at = DateTime()

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@marketplace.aggregate
class ShoppingCart:
    buyer_id = Identifier(required=True)
    items = HasMany(CartItem)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, buyer_id):
        now = datetime.now(UTC)
        return cls(
            buyer_id=buyer_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def subtotal(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)

    def _assert_active(self, action: str) -> None:
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a {self.status.lower()} cart"]})

    def add_item(self, product_id, variant_id, quantity, unit_price):
        """Add a line (or increase the quantity of a matching one)."""
        self._assert_active("add items to")

        existing = next(
            (i for i in self.items if str(i.product_id) == str(product_id) and str(i.variant_id) == str(variant_id)),
            None,
        )
        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                variant_id=str(variant_id),
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return item_id

    def remove_item(self, item_id):
        self._assert_active("remove items from")

        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def convert(self, checkout_id):
        """Clear the lines and mark the cart converted after a successful checkout."""
        self._assert_active("convert")

        snapshot = [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in self.items
        ]
        subtotal = self.subtotal

        for item in list(self.items):
            self.remove_items(item)

        now = datetime.now(UTC)
        self.status = CartStatus.CONVERTED.value
        self.updated_at = now
        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                buyer_id=str(self.buyer_id),
                checkout_id=str(checkout_id),
                items=json.dumps(snapshot),
                subtotal=subtotal,
                converted_at=now,
            )
        )

    def abandon(self):
        self._assert_active("abandon")

        now = datetime.now(UTC)
        self.status = CartStatus.ABANDONED.value
        self.updated_at = now
        self.raise_(CartAbandoned(cart_id=str(self.id), abandoned_at=now))


@marketplace.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def active_for_buyer(self, buyer_id) -> ShoppingCart | None:
        return self._dao.query.filter(buyer_id=str(buyer_id), status=CartStatus.ACTIVE.value).all().first
