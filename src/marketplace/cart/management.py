"""Cart management — the storefront's side of the cart."""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import ShoppingCart
from marketplace.catalogue.product import Product
from marketplace.domain import marketplace


@marketplace.command(part_of="ShoppingCart")
class CreateCart:
    buyer_id = Identifier(required=True)


@marketplace.command(part_of="ShoppingCart")
class AddCartItem:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="ShoppingCart")
class RemoveCartItem:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@marketplace.command(part_of="ShoppingCart")
class AbandonCart:
    cart_id = Identifier(required=True)


@marketplace.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        existing = repo.active_for_buyer(command.buyer_id)
        if existing is not None:
            return str(existing.id)

        cart = ShoppingCart.create(buyer_id=command.buyer_id)
        repo.add(cart)
        return str(cart.id)

    @handle(AddCartItem)
    def add_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)

        # Price snapshot comes from the catalogue at the time of adding
        product = current_domain.repository_for(Product).get(command.product_id)
        variant = product.variant(command.variant_id)

        item_id = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            unit_price=variant.price,
        )
        repo.add(cart)
        return item_id

    @handle(RemoveCartItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_item(command.item_id)
        repo.add(cart)

    @handle(AbandonCart)
    def abandon_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.abandon()
        repo.add(cart)
