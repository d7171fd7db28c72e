"""Product registration and restocking — commands and handler."""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.domain import marketplace


@marketplace.command(part_of="Product")
class RegisterProduct:
    title = String(required=True, max_length=255)
    seller_id = Identifier()
    category_id = Identifier()
    variants = Text(required=True)  # JSON: list of {sku, price, stock}


@marketplace.command(part_of="Product")
class RestockVariant:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command_handler(part_of=Product)
class ProductCommandHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        variants_data = json.loads(command.variants) if isinstance(command.variants, str) else command.variants
        product = Product.register(
            title=command.title,
            variants_data=variants_data,
            seller_id=command.seller_id,
            category_id=command.category_id,
        )
        current_domain.repository_for(Product).add(product)
        return {
            "product_id": str(product.id),
            "variant_ids": [str(v.id) for v in product.variants],
        }

    @handle(RestockVariant)
    def restock_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.restock(command.variant_id, command.quantity)
        repo.add(product)
        return product.variant(command.variant_id).stock
